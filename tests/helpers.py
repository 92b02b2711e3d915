"""Shared fixtures: threaded stub servers, proxy handlers and test certificates"""

import datetime
import ipaddress
import os
import select
import socket
import ssl
import struct
import threading
from typing import Callable, Dict, List, Optional, Tuple

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

HANDLER_TIMEOUT = 5.0


# ===============================================================================
# STUB SERVERS
# ===============================================================================

class StubServer:
    """Listens on 127.0.0.1 and runs ``handler(conn)`` per connection on a thread"""

    def __init__(self, handler: Callable[[socket.socket], None],
                 tls_context: Optional[ssl.SSLContext] = None):
        self.handler = handler
        self.tls_context = tls_context
        self.connections = 0
        self.errors: List[BaseException] = []
        self.finished = threading.Event()

        self.sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self.sock.bind(('127.0.0.1', 0))
        self.sock.listen(16)
        self.port = self.sock.getsockname()[1]
        self._thread = threading.Thread(target=self._serve, daemon=True)

    @property
    def address(self) -> str:
        return f"127.0.0.1:{self.port}"

    def start(self) -> 'StubServer':
        self._thread.start()
        return self

    def _serve(self) -> None:
        while True:
            try:
                conn, _ = self.sock.accept()
            except OSError:
                return
            self.connections += 1
            threading.Thread(target=self._handle, args=(conn,), daemon=True).start()

    def _handle(self, conn: socket.socket) -> None:
        conn.settimeout(HANDLER_TIMEOUT)
        try:
            if self.tls_context is not None:
                conn = self.tls_context.wrap_socket(conn, server_side=True)
            self.handler(conn)
        except Exception as e:
            self.errors.append(e)
        finally:
            conn.close()
            self.finished.set()

    def wait(self, timeout: float = HANDLER_TIMEOUT) -> bool:
        """Wait for a handler to finish"""
        return self.finished.wait(timeout)

    def close(self) -> None:
        try:
            self.sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        self.sock.close()

    def __enter__(self) -> 'StubServer':
        return self.start()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def unused_port() -> int:
    """A port on 127.0.0.1 that nothing listens on"""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


def read_until(conn: socket.socket, marker: bytes) -> bytes:
    data = b""
    while marker not in data:
        chunk = conn.recv(1024)
        if not chunk:
            break
        data += chunk
    return data


def recv_exactly(conn: socket.socket, count: int) -> bytes:
    data = b""
    while len(data) < count:
        chunk = conn.recv(count - len(data))
        if not chunk:
            raise ConnectionError("client closed early")
        data += chunk
    return data


def peer_closed(conn: socket.socket) -> bool:
    """True once the client has closed its end"""
    try:
        while True:
            if not conn.recv(1024):
                return True
    except (ConnectionResetError, ssl.SSLEOFError, ssl.SSLZeroReturnError):
        return True
    except (socket.timeout, ssl.SSLError):
        return False


def echo_upper(conn: socket.socket) -> None:
    """Read one chunk and send it back upper-cased"""
    data = conn.recv(1024)
    if data:
        conn.sendall(data.upper())


def upper_until_eof(conn: socket.socket) -> None:
    """Read everything until EOF, then reply with it upper-cased"""
    data = b""
    while True:
        chunk = conn.recv(1024)
        if not chunk:
            break
        data += chunk
    conn.sendall(data.upper())


# ===============================================================================
# PROXY HANDLERS
# ===============================================================================

def http_proxy_handler(record: Dict, response: bytes,
                       after: Optional[Callable[[socket.socket], None]] = None):
    """CONNECT proxy: records the request, sends ``response``, then runs ``after``"""
    def handler(conn: socket.socket) -> None:
        record['request'] = read_until(conn, b"\r\n\r\n")
        if response:
            conn.sendall(response)
        if after is not None:
            after(conn)
        record['client_closed'] = peer_closed(conn)
    return handler


def pump(client: socket.socket, upstream: socket.socket) -> None:
    """Copy bytes both ways until either side closes or goes quiet"""
    peers = {client: upstream, upstream: client}
    while True:
        # TLS may hold decrypted bytes that select cannot see
        ready = [sock for sock in peers if isinstance(sock, ssl.SSLSocket) and sock.pending()]
        if not ready:
            ready, _, _ = select.select(list(peers), [], [], HANDLER_TIMEOUT)
            if not ready:
                return
        for sock in ready:
            try:
                data = sock.recv(16384)
            except OSError:
                return
            if not data:
                return
            peers[sock].sendall(data)


def tunnel_handler(record: Dict, target_port: int,
                   response: bytes = b"HTTP/1.1 200 Connection established\r\n\r\n"):
    """Working CONNECT proxy: every tunnel goes to 127.0.0.1:``target_port``"""
    def handler(conn: socket.socket) -> None:
        record['request'] = read_until(conn, b"\r\n\r\n")
        with socket.create_connection(('127.0.0.1', target_port), timeout=HANDLER_TIMEOUT) as upstream:
            conn.sendall(response)
            pump(conn, upstream)
        record['tunnel_closed'] = True
    return handler


def silent_handler(record: Dict):
    """Accepts and reads, never answers"""
    def handler(conn: socket.socket) -> None:
        record['client_closed'] = peer_closed(conn)
    return handler


def socks5_handler(record: Dict, method: int = 0x00, auth_status: int = 0x00,
                   auth_version: int = 0x01, reply: int = 0x00, truncate_reply: bool = False,
                   after: Optional[Callable[[socket.socket], None]] = None):
    """Minimal SOCKS5 server recording greeting, credentials and CONNECT request"""
    def handler(conn: socket.socket) -> None:
        version, count = recv_exactly(conn, 2)
        record['methods'] = list(recv_exactly(conn, count))
        conn.sendall(bytes([0x05, method]))
        if method == 0xFF:
            record['client_closed'] = peer_closed(conn)
            return

        if method == 0x02:
            _, ulen = recv_exactly(conn, 2)
            record['username'] = recv_exactly(conn, ulen).decode()
            plen = recv_exactly(conn, 1)[0]
            record['password'] = recv_exactly(conn, plen).decode()
            conn.sendall(bytes([auth_version, auth_status]))
            if auth_status != 0x00 or auth_version != 0x01:
                record['client_closed'] = peer_closed(conn)
                return

        ver, cmd, _, atyp = recv_exactly(conn, 4)
        record['command'] = cmd
        record['atyp'] = atyp
        if atyp == 0x01:
            record['host'] = socket.inet_ntop(socket.AF_INET, recv_exactly(conn, 4))
        elif atyp == 0x04:
            record['host'] = socket.inet_ntop(socket.AF_INET6, recv_exactly(conn, 16))
        else:
            length = recv_exactly(conn, 1)[0]
            record['host'] = recv_exactly(conn, length).decode()
        record['port'] = struct.unpack('!H', recv_exactly(conn, 2))[0]

        if truncate_reply:
            conn.sendall(bytes([0x05, reply, 0x00]))
            return

        conn.sendall(bytes([0x05, reply, 0x00, 0x01]) + socket.inet_aton('10.0.0.1')
                     + struct.pack('!H', 4321))
        if reply == 0x00 and after is not None:
            after(conn)
        record['client_closed'] = peer_closed(conn)
    return handler


# ===============================================================================
# CERTIFICATES
# ===============================================================================

def _name(common_name: str) -> x509.Name:
    return x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])


def make_test_certificates(directory: str, hostname: str = "localhost") -> Tuple[str, str, str]:
    """Write a CA and a server certificate for ``hostname``/127.0.0.1.

    Returns (ca_file, cert_file, key_file).
    """
    now = datetime.datetime.now(datetime.timezone.utc)
    not_before = now - datetime.timedelta(days=1)
    not_after = now + datetime.timedelta(days=30)

    ca_key = ec.generate_private_key(ec.SECP256R1())
    ca_cert = (
        x509.CertificateBuilder()
        .subject_name(_name("proxdial test CA"))
        .issuer_name(_name("proxdial test CA"))
        .public_key(ca_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_before)
        .not_valid_after(not_after)
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .add_extension(x509.KeyUsage(
            digital_signature=True, content_commitment=False, key_encipherment=False,
            data_encipherment=False, key_agreement=False, key_cert_sign=True,
            crl_sign=True, encipher_only=False, decipher_only=False), critical=True)
        .add_extension(x509.SubjectKeyIdentifier.from_public_key(ca_key.public_key()),
                       critical=False)
        .sign(ca_key, hashes.SHA256())
    )

    key = ec.generate_private_key(ec.SECP256R1())
    cert = (
        x509.CertificateBuilder()
        .subject_name(_name(hostname))
        .issuer_name(ca_cert.subject)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_before)
        .not_valid_after(not_after)
        .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
        .add_extension(x509.KeyUsage(
            digital_signature=True, content_commitment=False, key_encipherment=False,
            data_encipherment=False, key_agreement=False, key_cert_sign=False,
            crl_sign=False, encipher_only=False, decipher_only=False), critical=True)
        .add_extension(x509.ExtendedKeyUsage([ExtendedKeyUsageOID.SERVER_AUTH]), critical=False)
        .add_extension(x509.SubjectAlternativeName([
            x509.DNSName(hostname),
            x509.IPAddress(ipaddress.ip_address("127.0.0.1")),
        ]), critical=False)
        .add_extension(x509.SubjectKeyIdentifier.from_public_key(key.public_key()),
                       critical=False)
        .add_extension(x509.AuthorityKeyIdentifier.from_issuer_public_key(ca_key.public_key()),
                       critical=False)
        .sign(ca_key, hashes.SHA256())
    )

    ca_file = os.path.join(directory, "ca.pem")
    cert_file = os.path.join(directory, "server.pem")
    key_file = os.path.join(directory, "server.key")
    with open(ca_file, "wb") as f:
        f.write(ca_cert.public_bytes(serialization.Encoding.PEM))
    with open(cert_file, "wb") as f:
        f.write(cert.public_bytes(serialization.Encoding.PEM))
    with open(key_file, "wb") as f:
        f.write(key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.TraditionalOpenSSL,
            serialization.NoEncryption(),
        ))
    return ca_file, cert_file, key_file


def server_tls_context(cert_file: str, key_file: str) -> ssl.SSLContext:
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.load_cert_chain(cert_file, key_file)
    return context
