"""
String collection helpers used when talking to the load balancer API.

Identifiers such as security groups or subnets come back from the API in
no particular order, so they are compared through an order-independent
hash. APIs that cap the number of items per call get their input split
into evenly sized groups.
"""

import hashlib
import math
from typing import List, Sequence, TypeVar

T = TypeVar("T")


def parse_string_list(value: str) -> List[str]:
    """
    Parse a comma separated string into a list of trimmed values.

    Empty entries are dropped, so ``"a, ,b,"`` yields ``["a", "b"]``.
    """
    return [part.strip() for part in value.split(",") if part.strip()]


def hash_strings(values: Sequence[str]) -> str:
    """
    Return a hex digest identifying a collection of strings.

    The values are sorted before hashing so any permutation of the same
    collection produces the same digest. Duplicates are kept: ``["a", "a"]``
    and ``["a"]`` hash differently. The sorted values are concatenated
    without a delimiter, matching the tags written by earlier releases.

    Args:
        values: The strings to hash (e.g. security group ids)

    Returns:
        Lowercase hexadecimal MD5 digest
    """
    hasher = hashlib.md5()
    for value in sorted(values):
        hasher.update(value.encode("utf-8"))
    return hasher.hexdigest()


def split_into_groups(sequence: Sequence[T], group_count: int) -> List[List[T]]:
    """
    Split a sequence into contiguous groups of roughly equal size.

    The size of each group is ``ceil(len(sequence) / group_count)``; the last
    group holds the remainder. Concatenating the groups reproduces the input.

    Args:
        sequence: Items to split, order is preserved
        group_count: Number of groups requested

    Returns:
        List of groups (empty when the sequence is empty)

    Raises:
        ValueError: If group_count is not positive
    """
    if group_count <= 0:
        raise ValueError(f"group_count must be positive, got {group_count}")

    items = list(sequence)
    if not items:
        return []

    per_group = math.ceil(len(items) / group_count)
    return [items[i : i + per_group] for i in range(0, len(items), per_group)]


def groups_for_limit(sequence: Sequence[T], max_per_call: int) -> List[List[T]]:
    """Split a sequence into the fewest even groups that respect an API limit."""
    if max_per_call <= 0:
        raise ValueError(f"max_per_call must be positive, got {max_per_call}")
    if not sequence:
        return []
    return split_into_groups(sequence, math.ceil(len(sequence) / max_per_call))
