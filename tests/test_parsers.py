import struct
import unittest

from src.httpstats.capture import split_l2_l3
from src.httpstats.classifier import classify, match_port, port_matches
from src.httpstats.events import RequestEvent, ResponseEvent
from src.httpstats.parsers.http import HttpRequestHead, HttpResponseHead, find_header, parse_http
from src.httpstats.parsers.ip import parse_ip


def build_ipv4(proto: int, src: bytes, dst: bytes, payload: bytes, flags_fragment: int = 0) -> bytes:
    version_ihl = (4 << 4) | 5
    total_length = 20 + len(payload)
    header = struct.pack(
        '!BBHHHBBH4s4s',
        version_ihl, 0, total_length, 0, flags_fragment, 64, proto, 0, src, dst,
    )
    return header + payload


def build_ipv6(next_header: int, payload: bytes) -> bytes:
    src = b'\x20\x01\x0d\xb8' + b'\x00' * 11 + b'\x01'
    dst = b'\x20\x01\x0d\xb8' + b'\x00' * 11 + b'\x02'
    header = struct.pack('!IHBB', 6 << 28, len(payload), next_header, 64) + src + dst
    return header + payload


def build_tcp(src_port: int, dst_port: int, app_payload: bytes) -> bytes:
    offset_flags = (5 << 12) | 0x018  # PSH+ACK
    header = struct.pack('!HHIIHHHH', src_port, dst_port, 1, 1, offset_flags, 65535, 0, 0)
    return header + app_payload


def build_udp(src_port: int, dst_port: int, app_payload: bytes) -> bytes:
    length = 8 + len(app_payload)
    return struct.pack('!HHH', src_port, dst_port, length) + b'\x00\x00' + app_payload


def tcp_packet(src_port: int, dst_port: int, app_payload: bytes) -> bytes:
    return build_ipv4(6, b'\x0A\x00\x00\x01', b'\x0A\x00\x00\x02', build_tcp(src_port, dst_port, app_payload))


REQUEST = b'GET /index.html HTTP/1.1\r\nHost: example.com\r\nAccept: */*\r\n\r\n'
RESPONSE = b'HTTP/1.1 200 OK\r\nContent-Type: text/html; charset=UTF-8\r\nContent-Length: 5\r\n\r\nhello'


class TestIpParsers(unittest.TestCase):
    def test_ipv4_tcp(self):
        pkt = tcp_packet(50000, 80, REQUEST)
        ip = parse_ip(pkt)
        self.assertIsNotNone(ip)
        self.assertEqual(ip.version, 4)
        self.assertEqual(ip.src, '10.0.0.1')
        self.assertEqual(ip.dst, '10.0.0.2')
        self.assertEqual(ip.proto, 6)
        self.assertEqual(len(ip.payload), 20 + len(REQUEST))

    def test_ipv4_ignores_ethernet_padding(self):
        pkt = tcp_packet(50000, 80, b'') + b'\x00' * 6
        ip = parse_ip(pkt)
        self.assertEqual(len(ip.payload), 20)

    def test_ipv6(self):
        ip = parse_ip(build_ipv6(6, build_tcp(80, 40000, RESPONSE)))
        self.assertEqual(ip.version, 6)
        self.assertEqual(ip.src, '2001:db8::1')
        self.assertEqual(ip.proto, 6)

    def test_garbage_is_not_ip(self):
        self.assertIsNone(parse_ip(b''))
        self.assertIsNone(parse_ip(b'\x45\x00'))
        self.assertIsNone(parse_ip(b'\x00' * 60))


class TestHttpParser(unittest.TestCase):
    def test_request_head(self):
        head = parse_http(REQUEST)
        self.assertIsInstance(head, HttpRequestHead)
        self.assertEqual(head.method, 'GET')
        self.assertEqual(head.target, '/index.html')
        self.assertEqual(head.host, 'example.com')

    def test_response_head(self):
        head = parse_http(RESPONSE)
        self.assertIsInstance(head, HttpResponseHead)
        self.assertEqual(head.status_code, 200)
        self.assertEqual(head.reason, 'OK')

    def test_host_header_is_case_insensitive_and_stripped(self):
        self.assertEqual(find_header(b'POST / HTTP/1.0\r\nhOsT:   api.local:8080  \r\n\r\n', 'Host'), 'api.local:8080')

    def test_header_in_body_is_ignored(self):
        payload = b'POST /x HTTP/1.1\r\nContent-Length: 10\r\n\r\nHost: evil'
        self.assertEqual(parse_http(payload).host, '')

    def test_request_line_split_across_segments(self):
        # URL longa: o segmento termina antes da versão e do CRLF
        head = parse_http(b'GET /' + b'a' * 1400)
        self.assertIsInstance(head, HttpRequestHead)
        self.assertEqual(head.method, 'GET')
        self.assertEqual(head.target, '/' + 'a' * 1400)
        self.assertEqual(head.host, '')
        self.assertEqual(parse_http(b'POST ').target, '')

    def test_non_http_payloads(self):
        self.assertIsNone(parse_http(b''))
        self.assertIsNone(parse_http(b'\x16\x03\x01\x02\x00'))  # TLS ClientHello
        self.assertIsNone(parse_http(b'FETCH / HTTP/1.1\r\n\r\n'))
        self.assertIsNone(parse_http(b'GET'))
        self.assertIsNone(parse_http(b'get / HTTP/1.1\r\n'))
        self.assertIsNone(parse_http(b'HTTP/1.1 OK\r\n'))
        self.assertIsNone(parse_http(b'<html>continuation of a body</html>'))


class TestClassifier(unittest.TestCase):
    def test_request_on_destination_port(self):
        ev = classify(tcp_packet(50000, 80, REQUEST), 80)
        self.assertEqual(ev, RequestEvent(host='example.com', byte_size=len(REQUEST)))

    def test_response_on_source_port(self):
        ev = classify(tcp_packet(80, 50000, RESPONSE), 80)
        self.assertEqual(ev, ResponseEvent(byte_size=len(RESPONSE)))

    def test_request_without_host(self):
        payload = b'GET / HTTP/1.0\r\n\r\n'
        self.assertEqual(classify(tcp_packet(50000, 80, payload), 80), RequestEvent('', len(payload)))

    def test_long_request_line_still_counts(self):
        payload = b'GET /' + b'a' * 1400
        ev = classify(tcp_packet(50000, 80, payload), 80)
        self.assertEqual(ev, RequestEvent(host='', byte_size=len(payload)))

    def test_other_port_is_ignored(self):
        self.assertIsNone(classify(tcp_packet(50000, 8080, REQUEST), 80))
        self.assertEqual(classify(tcp_packet(50000, 8080, REQUEST), 8080).host, 'example.com')

    def test_udp_is_ignored(self):
        pkt = build_ipv4(17, b'\x0A\x00\x00\x01', b'\x0A\x00\x00\x02', build_udp(50000, 80, REQUEST))
        self.assertIsNone(classify(pkt, 80))

    def test_continuation_and_empty_segments_are_ignored(self):
        self.assertIsNone(classify(tcp_packet(80, 50000, b'more body bytes'), 80))
        self.assertIsNone(classify(tcp_packet(50000, 80, b''), 80))
        # Mas a porta ainda casa, para quem grava os pacotes
        self.assertIsNotNone(match_port(tcp_packet(50000, 80, b''), 80))

    def test_port_filter_accepts_tcp_and_udp(self):
        udp = build_ipv4(17, b'\x0A\x00\x00\x01', b'\x0A\x00\x00\x02', build_udp(80, 5353, b'x'))
        self.assertTrue(port_matches(udp, 80))
        self.assertFalse(port_matches(udp, 8080))
        self.assertTrue(port_matches(tcp_packet(50000, 80, b''), 80))
        self.assertTrue(port_matches(build_ipv6(17, build_udp(5000, 80, b'')), 80))
        icmp = build_ipv4(1, b'\x0A\x00\x00\x01', b'\x0A\x00\x00\x02', b'\x08\x00' + b'\x00' * 6)
        self.assertFalse(port_matches(icmp, 80))
        self.assertFalse(port_matches(b'\x00' * 10, 80))

    def test_ipv6_request(self):
        ev = classify(build_ipv6(6, build_tcp(40000, 80, REQUEST)), 80)
        self.assertEqual(ev, RequestEvent('example.com', len(REQUEST)))

    def test_non_first_fragment_is_ignored(self):
        pkt = build_ipv4(6, b'\x0A\x00\x00\x01', b'\x0A\x00\x00\x02', build_tcp(50000, 80, REQUEST), flags_fragment=0x0010)
        self.assertIsNone(classify(pkt, 80))

    def test_truncated_packets_do_not_raise(self):
        pkt = tcp_packet(50000, 80, REQUEST)
        for cut in range(0, 60):
            classify(pkt[:cut], 80)


class TestSplitL2L3(unittest.TestCase):
    def eth(self, ethertype: int, payload: bytes) -> bytes:
        return b'\xaa' * 6 + b'\xbb' * 6 + struct.pack('!H', ethertype) + payload

    def test_ethernet_ipv4(self):
        ip = tcp_packet(50000, 80, REQUEST)
        l2, l3 = split_l2_l3(self.eth(0x0800, ip))
        self.assertEqual(len(l2), 14)
        self.assertEqual(l3, ip)

    def test_vlan_tag(self):
        ip = tcp_packet(50000, 80, REQUEST)
        frame = self.eth(0x8100, struct.pack('!HH', 10, 0x0800) + ip)
        l2, l3 = split_l2_l3(frame)
        self.assertEqual(len(l2), 18)
        self.assertEqual(l3, ip)

    def test_arp_has_no_l3(self):
        _l2, l3 = split_l2_l3(self.eth(0x0806, b'\x00' * 28))
        self.assertIsNone(l3)
        self.assertIsNone(split_l2_l3(b'\x00' * 5)[1])


if __name__ == '__main__':
    unittest.main()
