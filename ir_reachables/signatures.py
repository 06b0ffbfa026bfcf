"""
ir_reachables.signatures
========================

Signature index used to resolve indirect calls.

An indirect call through a value of function type ``S`` is conservatively
assumed to reach *every* defined function whose signature is exactly ``S``
(similar to rapid type analysis).  Declarations are left out of the index:
they have no body to analyse, so they can never be reachable targets.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Dict, FrozenSet, Iterable, Iterator, List, Optional, Set

from .program import Function, FunctionSignature


class SignatureIndex:
    """Read-only mapping ``FunctionSignature -> frozenset[Function]``."""

    __slots__ = ("_by_sig",)

    def __init__(self, by_sig: Dict[FunctionSignature, FrozenSet[Function]]) -> None:
        self._by_sig = by_sig

    def lookup(self, sig: Optional[FunctionSignature]) -> FrozenSet[Function]:
        """Return all defined functions with signature *sig* (maybe empty)."""
        if sig is None:
            return frozenset()
        return self._by_sig.get(sig, frozenset())

    def signatures(self) -> List[FunctionSignature]:
        return list(self._by_sig)

    def __contains__(self, sig) -> bool:
        return sig in self._by_sig

    def __iter__(self) -> Iterator[FunctionSignature]:
        return iter(self._by_sig)

    def __len__(self) -> int:
        return len(self._by_sig)

    def __repr__(self) -> str:
        n = sum(len(v) for v in self._by_sig.values())
        return f"SignatureIndex(signatures={len(self._by_sig)}, functions={n})"


def build_signature_index(functions: Iterable[Function]) -> SignatureIndex:
    """Group the defined functions among *functions* by signature."""
    groups: Dict[FunctionSignature, Set[Function]] = defaultdict(set)
    for func in functions:
        if func.is_declaration:
            continue
        groups[func.signature].add(func)
    return SignatureIndex({sig: frozenset(fs) for sig, fs in groups.items()})
