"""
Key Material — Short-lived holder for a user-supplied secret.

``KeyMaterial`` keeps the UTF-8 bytes of a secret in a mutable buffer that
is zeroed when the holder is wiped or its ``with`` block exits. It is passed
by parameter through a single operation and never stored on any object that
outlives that call.
"""


class KeyMaterial:
    """Ephemeral secret bytes with guaranteed wipe.

    Usage::

        with KeyMaterial(secret) as key:
            payload = encrypt(data, key)
    """

    __slots__ = ("_buf",)

    def __init__(self, secret: "str | bytes | bytearray | KeyMaterial"):
        if isinstance(secret, KeyMaterial):
            data = bytes(secret.buffer)
        elif isinstance(secret, str):
            data = secret.encode("utf-8")
        else:
            data = bytes(secret)
        self._buf = bytearray(data)

    @property
    def buffer(self) -> bytearray:
        """Raw secret bytes. Raises if the material was already wiped."""
        if self._buf is None:
            raise ValueError("Key material has been wiped")
        return self._buf

    @property
    def wiped(self) -> bool:
        return self._buf is None

    def __len__(self) -> int:
        """Length in characters, as used by the secret policy."""
        return len(self.buffer.decode("utf-8"))

    def __bool__(self) -> bool:
        return self._buf is not None and len(self._buf) > 0

    def reveal(self) -> str:
        """Return the secret as a string for APIs that require ``str``."""
        return self.buffer.decode("utf-8")

    def wipe(self) -> None:
        """Zero the buffer and drop it."""
        if self._buf is not None:
            for i in range(len(self._buf)):
                self._buf[i] = 0
            self._buf = None

    def __enter__(self) -> "KeyMaterial":
        return self

    def __exit__(self, *exc) -> None:
        self.wipe()

    def __repr__(self) -> str:
        state = "wiped" if self._buf is None else "redacted"
        return f"<KeyMaterial {state}>"

    __str__ = __repr__


SecretLike = str | KeyMaterial


def secret_bytes(secret: SecretLike) -> bytes:
    """UTF-8 bytes of a secret given as ``str`` or ``KeyMaterial``."""
    if isinstance(secret, KeyMaterial):
        return bytes(secret.buffer)
    return secret.encode("utf-8")


def secret_text(secret: SecretLike) -> str:
    """String form of a secret given as ``str`` or ``KeyMaterial``."""
    if isinstance(secret, KeyMaterial):
        return secret.reveal()
    return secret
