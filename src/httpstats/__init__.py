"""
Estatísticas de tráfego HTTP por host

Este pacote contém:
- events: tipos de evento entregues ao agregador (requisição / resposta)
- parsers: interpretadores de IPv4/IPv6, TCP e da linha inicial HTTP
- classifier: transforma um pacote IP em evento (ou nada)
- stats: agregação de bytes e mensagens por host, com correlação resposta -> última requisição
- ui: resumo em texto por host e baseline para variação entre ticks
- capture: captura ao vivo via raw socket e leitura/escrita de pcap (scapy)
- logging_csv: registro opcional de cada resumo em CSV
- main: CLI para executar o coletor

Importante: captura ao vivo requer privilégios (root ou CAP_NET_RAW).
"""

__version__ = '1.0.0'
