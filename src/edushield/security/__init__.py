from .codec import EncryptionCodec

__all__ = ["EncryptionCodec"]
