"""
Shared client helpers and reference digests for the tests.
"""

import socket
import threading


# Telnet-style CRLF records and their SHA-256 digests.
CRLF_RECORDS = b"1\r\n22\r\n333\r\n4444\r\n"
CRLF_DIGESTS = [
    "F1B2F662800122BED0FF255693DF89C4487FBDCF453D3524A42D4EC20C3D9C04",
    "12D3A4EFA6646B3ECE4782F70033B9785BF0D167B553C43E22579B031CEA5C4D",
    "F407DF8F8E7A374565BBFF2C11FCF2B37FBBC6F070CA9E1317240FC9A90C6675",
    "4A325BE077D8A33AD25ED3462CD232AE8367AF77F8070E8E4090670BE7ECBA5A",
]

LF_RECORDS = b"1\n22\n333\n4444\n"
LF_DIGESTS = [
    "4355A46B19D348DC2F57C046F8EF63D4538EBB936000F3C9EE954A27460DD865",
    "F14B4987904BCB5814E4459A057ED4D20F58A633152288A761214DCD28780B56",
    "78B9041431A47C113011BF6056A6F48BADED875B6845F59BC7F110BBD02D5BA6",
    "5BA631AC93BAA31CCC57EE358C97F97BC6754F98F90FA2D6C01BFD3DCDAAA1CE",
]

ABC_DIGEST = "BA7816BF8F01CFEA414140DE5DAE2223B00361A396177A9CB410FF61F20015AD"


def exchange(address: tuple[str, int], payload: bytes, timeout: float = 30.0) -> bytes:
    """
    Send payload, half-close, and return everything the server answered.

    Sending runs in its own thread so a large answer can never deadlock
    against a large request.
    """
    with socket.create_connection(address, timeout=timeout) as sock:
        errors: list[BaseException] = []

        def send_all():
            try:
                sock.sendall(payload)
                sock.shutdown(socket.SHUT_WR)
            except OSError as e:
                errors.append(e)

        sender = threading.Thread(target=send_all, daemon=True)
        sender.start()

        chunks = []
        while True:
            data = sock.recv(65536)
            if not data:
                break
            chunks.append(data)

        sender.join(timeout)
        if errors:
            raise errors[0]

    return b"".join(chunks)


def digest_lines(answer: bytes) -> list[str]:
    """Split a server answer into hex digests, checking the framing."""
    assert answer == b"" or answer.endswith(b"\n")
    return answer.decode("ascii").splitlines()


