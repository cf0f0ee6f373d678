"""密钥保护测试"""

import pytest

from yauth.auth import ProtectionError, PurposeProtector, SecretProtector


class TestSecretProtector:
    """SecretProtector 测试"""

    def test_round_trip(self):
        protector = SecretProtector("master-key").for_purpose("yauth.totp.TwoFactor")
        stored = protector.protect("JBSWY3DPEHPK3PXP")
        assert stored != "JBSWY3DPEHPK3PXP"
        assert protector.unprotect(stored) == "JBSWY3DPEHPK3PXP"

    def test_purpose_isolation(self):
        """测试不同用途的密文互不相通"""
        master = SecretProtector("master-key")
        stored = master.for_purpose("a").protect("secret")
        with pytest.raises(ProtectionError):
            master.for_purpose("b").unprotect(stored)

    def test_wrong_master_key(self):
        stored = PurposeProtector("key-1", "p").protect("secret")
        with pytest.raises(ProtectionError):
            PurposeProtector("key-2", "p").unprotect(stored)

    def test_tampered_ciphertext(self):
        protector = PurposeProtector("key", "p")
        with pytest.raises(ProtectionError):
            protector.unprotect("not-a-token")

    def test_empty_master_key(self):
        with pytest.raises(ValueError):
            SecretProtector("")
