"""
High-availability pair index.
"""
import logging
from typing import Dict, Iterable, Iterator, List, Optional

from app.models.audit import HAPair

logger = logging.getLogger(__name__)

PAIR_SEPARATOR = ":"


def parse_ha_pairs(text: str) -> List[HAPair]:
    """
    Parse ``fw1:fw2`` lines into HA pairs.

    Lines that do not split into exactly two non-empty identifiers are
    dropped without error.

    Args:
        text: Pair file content, one pair per line

    Returns:
        Parsed pairs in file order
    """
    pairs = []
    for line_number, line in enumerate(text.splitlines(), start=1):
        parts = line.split(PAIR_SEPARATOR)
        if len(parts) != 2:
            if line.strip():
                logger.debug(f"Skipping malformed HA pair line {line_number}: {line!r}")
            continue
        fw1, fw2 = parts[0].strip(), parts[1].strip()
        if not fw1 or not fw2:
            logger.debug(f"Skipping HA pair line {line_number} with empty member: {line!r}")
            continue
        pairs.append(HAPair(fw1=fw1, fw2=fw2))
    return pairs


class HAIndex:
    """
    Symmetric firewall -> partner lookup.

    A firewall belongs to at most one pair. When a later pair re-pairs a
    firewall, the later pair wins and the previous partner is unpaired, so
    ``partner_of(a) == b`` always implies ``partner_of(b) == a``.
    """

    def __init__(self):
        self._partners: Dict[str, str] = {}

    @classmethod
    def from_pairs(cls, pairs: Iterable[HAPair]) -> "HAIndex":
        index = cls()
        for pair in pairs:
            index.add(pair)
        return index

    @classmethod
    def from_text(cls, text: str) -> "HAIndex":
        return cls.from_pairs(parse_ha_pairs(text))

    def add(self, pair: HAPair) -> None:
        fw1, fw2 = pair.fw1.strip(), pair.fw2.strip()
        if not fw1 or not fw2 or fw1 == fw2:
            logger.debug(f"Ignoring invalid HA pair: {pair.fw1!r}:{pair.fw2!r}")
            return

        for member in (fw1, fw2):
            previous = self._partners.get(member)
            if previous is not None and previous not in (fw1, fw2):
                logger.warning(
                    f"Firewall {member} re-paired from {previous} to "
                    f"{fw2 if member == fw1 else fw1}; last pair wins"
                )
                del self._partners[previous]

        self._partners[fw1] = fw2
        self._partners[fw2] = fw1

    def partner_of(self, name: str) -> Optional[str]:
        return self._partners.get(name)

    def pairs(self) -> List[HAPair]:
        seen = set()
        result = []
        for fw, partner in self._partners.items():
            if fw in seen:
                continue
            seen.update((fw, partner))
            result.append(HAPair(fw1=fw, fw2=partner))
        return result

    def __contains__(self, name: object) -> bool:
        return name in self._partners

    def __len__(self) -> int:
        return len(self.pairs())

    def __iter__(self) -> Iterator[str]:
        return iter(self._partners)
