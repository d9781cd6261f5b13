# aptos_warmup/wallets.py
import hashlib
import hmac
import unicodedata
from pathlib import Path
from typing import Dict, List

from aptos_sdk.account import Account

from .config import ConfigError
from .util import get_logger, read_lines, short

log = get_logger()

APTOS_DERIVATION_PATH = "m/44'/637'/0'/0'/0'"
HARDENED = 0x80000000


def mnemonic_to_seed(phrase: str, passphrase: str = "") -> bytes:
    """BIP-39 seed for a recovery phrase; words are matched case-insensitively."""
    words = unicodedata.normalize("NFKD", " ".join(w.lower() for w in phrase.split()))
    salt = unicodedata.normalize("NFKD", "mnemonic" + passphrase)
    return hashlib.pbkdf2_hmac("sha512", words.encode("utf-8"), salt.encode("utf-8"), 2048)


def slip10_ed25519(seed: bytes, path: str) -> bytes:
    """SLIP-0010 ed25519 private key; every path segment is hardened."""
    digest = hmac.new(b"ed25519 seed", seed, hashlib.sha512).digest()
    key, chain_code = digest[:32], digest[32:]
    segments = path.split("/")
    if segments[0] != "m":
        raise ValueError(f"Bad derivation path: {path!r}")
    for seg in segments[1:]:
        index = int(seg.rstrip("'")) | HARDENED
        data = b"\x00" + key + index.to_bytes(4, "big")
        digest = hmac.new(chain_code, data, hashlib.sha512).digest()
        key, chain_code = digest[:32], digest[32:]
    return key


def account_from_line(line: str) -> Account:
    """A recovery phrase (several words) or a raw private key hex string."""
    line = line.strip()
    if len(line.split()) > 1:
        key = slip10_ed25519(mnemonic_to_seed(line), APTOS_DERIVATION_PATH)
        return Account.load_key("0x" + key.hex())
    return Account.load_key(line)


def load_wallets(path: Path) -> Dict[str, Account]:
    """address -> Account, in file order."""
    try:
        lines = read_lines(path)
    except OSError as e:
        raise ConfigError(f"Cannot read wallets file {path}: {e}") from e
    wallets: Dict[str, Account] = {}
    for n, line in enumerate(lines, start=1):
        try:
            acct = account_from_line(line)
        except Exception as e:
            raise ConfigError(f"{path}:{n}: not a private key or recovery phrase ({type(e).__name__})") from None
        wallets[str(acct.address())] = acct
    if not wallets:
        raise ConfigError(f"No wallets in {path}")
    log.info(f"wallets loaded: {len(wallets)} ({', '.join(short(a) for a in wallets)})")
    return wallets


def load_warmup_addresses(path: Path) -> List[str]:
    """Operator-selected subset; a missing or empty file means 'all wallets'."""
    if not Path(path).is_file():
        return []
    return read_lines(path)
