"""Strands routed through helices as ordered domains."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

import networkx as nx

from .errors import IndexOutOfDeclaredRange, TopologyMismatch, UnknownHelix
from .helix import Helix


@dataclass(frozen=True)
class Nucl:
    helix: int
    index: int
    forward: bool

    def prime3(self) -> "Nucl":
        """Next nucleotide of the same strand direction, 3' side."""

        return Nucl(self.helix, self.index + 1 if self.forward else self.index - 1, self.forward)

    def prime5(self) -> "Nucl":
        return Nucl(self.helix, self.index - 1 if self.forward else self.index + 1, self.forward)

    def compl(self) -> "Nucl":
        return Nucl(self.helix, self.index, not self.forward)


@dataclass(frozen=True)
class HelixDomain:
    """Half-open interval ``[start, end)`` of one strand direction of a helix."""

    helix: int
    start: int
    end: int
    forward: bool

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise TopologyMismatch(f"Domain on helix {self.helix} has start {self.start} >= end {self.end}.")

    def __len__(self) -> int:
        return self.end - self.start

    def prime5(self) -> Nucl:
        return Nucl(self.helix, self.start if self.forward else self.end - 1, self.forward)

    def prime3(self) -> Nucl:
        return Nucl(self.helix, self.end - 1 if self.forward else self.start, self.forward)

    def nucl_at(self, offset: int) -> Nucl:
        """Nucleotide ``offset`` positions from the 5' end of the domain."""

        if self.forward:
            return Nucl(self.helix, self.start + offset, True)
        return Nucl(self.helix, self.end - 1 - offset, False)

    def nucls(self) -> Iterator[Nucl]:
        for offset in range(len(self)):
            yield self.nucl_at(offset)


@dataclass(frozen=True)
class Insertion:
    """Unpaired nucleotides without a position on any helix."""

    nb_nucl: int

    def __len__(self) -> int:
        return self.nb_nucl


Domain = Union[HelixDomain, Insertion]


class Junction(Enum):
    ADJACENT = "Adjacent"
    CROSSOVER = "Crossover"
    PRIME3 = "Prime3"
    PRIME5 = "Prime5"

    @classmethod
    def parse(cls, value) -> "Junction":
        if isinstance(value, Junction):
            return value
        if isinstance(value, Mapping) and "IdentifiedXover" in value:
            return cls.CROSSOVER
        key = str(value).strip().lower()
        for member in cls:
            if member.value.lower() == key:
                return member
        if key in {"identifiedxover", "unindentifiedxover", "unidentifiedxover", "xover"}:
            return cls.CROSSOVER
        raise ValueError(f"Unknown junction kind {value!r}.")


def _previous_helix_domain(domains: Sequence[Domain], index: int, cyclic: bool) -> Optional[HelixDomain]:
    """Last helix domain at or before ``index`` (wrapping around for cyclic strands)."""

    count = len(domains)
    steps = count if cyclic else index + 1
    for back in range(steps):
        domain = domains[(index - back) % count]
        if isinstance(domain, HelixDomain):
            return domain
    return None


def _junction_between(prev: Optional[HelixDomain], nxt: Domain) -> Junction:
    if isinstance(nxt, Insertion) or prev is None:
        return Junction.ADJACENT
    if nxt.prime5() == prev.prime3().prime3():
        return Junction.ADJACENT
    return Junction.CROSSOVER


def read_junctions(domains: Sequence[Domain], cyclic: bool) -> List[Junction]:
    """Junction kinds implied by the geometry of ``domains``.

    ``junctions[i]`` links ``domains[i]`` to ``domains[i + 1]``; the last
    entry is ``PRIME3`` for a linear strand and links back to the first
    domain for a cyclic one.
    """

    junctions: List[Junction] = []
    count = len(domains)
    for index in range(count):
        if index == count - 1 and not cyclic:
            junctions.append(Junction.PRIME3)
            continue
        nxt = domains[(index + 1) % count]
        junctions.append(_junction_between(_previous_helix_domain(domains, index, cyclic), nxt))
    return junctions


@dataclass
class Strand:
    domains: List[Domain] = field(default_factory=list)
    junctions: Optional[List[Junction]] = None
    color: int = 0
    cyclic: bool = False
    name: Optional[str] = None

    def __post_init__(self) -> None:
        self.domains = list(self.domains)
        if self.junctions is None:
            self.junctions = read_junctions(self.domains, self.cyclic)
        else:
            self.junctions = [Junction.parse(junction) for junction in self.junctions]

    def helix_domains(self) -> List[HelixDomain]:
        return [domain for domain in self.domains if isinstance(domain, HelixDomain)]

    def helices(self) -> List[int]:
        return sorted({domain.helix for domain in self.helix_domains()})

    def prime5(self) -> Optional[Nucl]:
        domains = self.helix_domains()
        if self.cyclic or not domains:
            return None
        return domains[0].prime5()

    def prime3(self) -> Optional[Nucl]:
        domains = self.helix_domains()
        if self.cyclic or not domains:
            return None
        return domains[-1].prime3()

    def nucls(self) -> Iterator[Nucl]:
        for domain in self.helix_domains():
            yield from domain.nucls()


def total_length(strand: Strand) -> int:
    return sum(len(domain) for domain in strand.domains)


def nucleotide_at(strand: Strand, offset: int) -> Optional[Nucl]:
    """Nucleotide ``offset`` positions from the 5' end; ``None`` inside an insertion."""

    if offset < 0 or offset >= total_length(strand):
        raise IndexOutOfDeclaredRange(f"Offset {offset} is outside a strand of length {total_length(strand)}.")
    remaining = offset
    for domain in strand.domains:
        if remaining < len(domain):
            if isinstance(domain, Insertion):
                return None
            return domain.nucl_at(remaining)
        remaining -= len(domain)
    return None  # pragma: no cover


def _expected_junctions(strand: Strand) -> List[Junction]:
    return read_junctions(strand.domains, strand.cyclic)


def validate_strand(strand: Strand, helices: Mapping[int, Helix]) -> None:
    """Check domains against ``helices`` and junctions against the domain geometry."""

    if not strand.domains:
        raise TopologyMismatch("A strand needs at least one domain.")
    for position, domain in enumerate(strand.domains):
        if isinstance(domain, Insertion):
            if domain.nb_nucl <= 0:
                raise TopologyMismatch(f"Insertion at domain {position} has {domain.nb_nucl} nucleotides.")
            continue
        if domain.start >= domain.end:
            raise TopologyMismatch(f"Domain {position} has start {domain.start} >= end {domain.end}.")
        helix = helices.get(domain.helix)
        if helix is None:
            raise UnknownHelix(f"Domain {position} refers to missing helix {domain.helix}.")
        helix.check_index(domain.start)
        helix.check_index(domain.end - 1)

    expected = _expected_junctions(strand)
    given = list(strand.junctions or [])
    if not strand.cyclic and given[:1] == [Junction.PRIME5]:
        given = given[1:]
    if len(given) != len(expected):
        raise TopologyMismatch(
            f"Strand has {len(strand.domains)} domains but {len(strand.junctions or [])} junctions."
        )
    for position, (actual, wanted) in enumerate(zip(given, expected)):
        if actual is not wanted:
            raise TopologyMismatch(
                f"Junction {position} is {actual.value} but the domains imply {wanted.value}."
            )


def crossovers(strand: Strand) -> List[Tuple[Nucl, Nucl]]:
    """Pairs ``(prime3 end, prime5 end)`` joined by a cross-over, in strand order."""

    pairs = []
    count = len(strand.domains)
    for index, junction in enumerate(_expected_junctions(strand)):
        if junction is not Junction.CROSSOVER:
            continue
        prev = _previous_helix_domain(strand.domains, index, strand.cyclic)
        nxt = strand.domains[(index + 1) % count]
        if prev is not None and isinstance(nxt, HelixDomain):
            pairs.append((prev.prime3(), nxt.prime5()))
    return pairs


def helix_graph(strands: Iterable[Strand]) -> nx.Graph:
    """Helices as nodes, cross-overs between them as weighted edges."""

    graph = nx.Graph()
    for strand in strands:
        for domain in strand.helix_domains():
            graph.add_node(domain.helix)
        for left, right in crossovers(strand):
            if left.helix == right.helix:
                continue
            if graph.has_edge(left.helix, right.helix):
                graph[left.helix][right.helix]["weight"] += 1
            else:
                graph.add_edge(left.helix, right.helix, weight=1)
    return graph
