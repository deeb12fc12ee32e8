"""
Unit tests for address and transaction hash normalization.
"""
import pytest

from utils.normalize import normalize_address, normalize_tx_hash

pytestmark = pytest.mark.unit

CHECKSUMMED = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"


class TestNormalizeAddress:

    def test_lowercase_passthrough(self):
        assert normalize_address("0x" + "ab" * 20) == "0x" + "ab" * 20

    def test_valid_checksum_is_lowercased(self):
        assert normalize_address(CHECKSUMMED) == CHECKSUMMED.lower()

    def test_all_uppercase_hex_needs_no_checksum(self):
        assert normalize_address("0x" + "AB" * 20) == "0x" + "ab" * 20

    def test_mixed_case_typo_rejected(self):
        # single flipped letter: hex-valid, checksum-invalid
        typo = CHECKSUMMED[:4] + CHECKSUMMED[4].lower() + CHECKSUMMED[5:]
        assert typo != CHECKSUMMED
        assert normalize_address(typo) is None

    @pytest.mark.parametrize("value", [f"  {CHECKSUMMED}", f"{CHECKSUMMED}\n", " 0x" + "ab" * 20 + " "])
    def test_surrounding_whitespace_rejected(self, value):
        assert normalize_address(value) is None

    @pytest.mark.parametrize(
        "value",
        [
            None,
            "",
            "0x",
            "0x1234",
            CHECKSUMMED[2:],
            "0x" + "zz" * 20,
            "0x" + "ab" * 21,
            # last letter's case flipped breaks the EIP-55 checksum
            CHECKSUMMED[:-1] + "D",
            12345,
        ],
    )
    def test_invalid(self, value):
        assert normalize_address(value) is None


class TestNormalizeTxHash:

    def test_trims_and_lowercases(self):
        raw = "  0x" + "AB" * 32 + " "
        assert normalize_tx_hash(raw) == "0x" + "ab" * 32

    def test_uppercase_prefix(self):
        assert normalize_tx_hash("0X" + "12" * 32) == "0x" + "12" * 32

    @pytest.mark.parametrize(
        "value",
        [None, "", "0x" + "a" * 63, "0x" + "a" * 65, "a" * 66, "0x" + "g" * 64, "0x" + "a" * 40],
    )
    def test_invalid(self, value):
        assert normalize_tx_hash(value) is None
