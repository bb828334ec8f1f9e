import fnmatch

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

HANOI = (21.0285, 105.8542)


def generate_pem_pair():
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")
    public_pem = key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode("utf-8")
    return private_pem, public_pem


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


class FakeRedis:
    """Dict-backed stand-in for the handful of redis calls the cache makes"""

    def __init__(self):
        self.data = {}

    def get(self, key):
        return self.data.get(key)

    def setex(self, key, ttl, value):
        self.data[key] = value

    def delete(self, *keys):
        return sum(1 for key in keys if self.data.pop(key, None) is not None)

    def scan(self, cursor=0, match="*", count=10):
        return 0, [key for key in self.data if fnmatch.fnmatchcase(key, match)]

    def ping(self):
        return True


class BrokenRedis:
    """Every call fails like an unreachable server"""

    def __getattr__(self, name):
        def _fail(*args, **kwargs):
            raise ConnectionError("redis down")
        return _fail
