import hashlib
import hmac
from typing import Optional


def _digest(value: str) -> bytes:
    # surrogatepass: a lone surrogate from a JSON body still hashes (and mismatches)
    return hashlib.sha256(value.encode("utf-8", errors="surrogatepass")).digest()

def tokens_match(expected: Optional[str], submitted: Optional[str]) -> bool:
    """
    Compare two tokens in constant time.
    Both sides are reduced to fixed-length digests first, so neither the
    position of the first differing byte nor the token lengths change the
    amount of work done by the comparison.
    """
    if expected is None or submitted is None:
        return False
    return hmac.compare_digest(_digest(expected), _digest(submitted))
