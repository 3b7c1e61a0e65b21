"""Product table driving parsing, validation, actuation and replies.

Each dispensable kind is described once here. Adding a product means adding
one ``ProductProfile`` plus one actuator binding; the parser, validator and
state machine read everything else from this table.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, Iterable, Iterator, Mapping, Optional

from .models import CommandKind


@dataclass(frozen=True, slots=True)
class ProductProfile:
    """Static description of one dispensable kind.

    Attributes:
        kind: Command kind this profile describes.
        prefix: Single command character selecting the kind (case-insensitive).
        max_duration_seconds: Optional ceiling; None means unbounded.
        telemetry_key: Key used in stock snapshots, None when the kind has
            no stock sensor.
        completion_message: Reply text sent when the dispense finishes.
        unavailable_message: Reply text sent when stock is missing.
        uses_agitator: Whether the shared agitator runs during the dispense.
    """

    kind: CommandKind
    prefix: str
    max_duration_seconds: Optional[float] = None
    telemetry_key: Optional[str] = None
    completion_message: str = ""
    unavailable_message: str = ""
    uses_agitator: bool = True

    @property
    def label(self) -> str:
        return self.kind.value

    @property
    def checks_stock(self) -> bool:
        return self.telemetry_key is not None

    def received_message(self, duration_seconds: float) -> str:
        return f"{self.label} command received: {duration_seconds:.2f}s"


DEFAULT_PRODUCTS: tuple[ProductProfile, ...] = (
    ProductProfile(
        kind=CommandKind.SUGAR,
        prefix="S",
        max_duration_seconds=10.0,
        telemetry_key="sugar",
        completion_message="Sugar dispensing completed",
        unavailable_message="Sugar stock is too low to dispense!",
    ),
    ProductProfile(
        kind=CommandKind.WATER,
        prefix="W",
        max_duration_seconds=30.0,
        telemetry_key="water",
        completion_message="Water pumping completed",
        unavailable_message="Water tank is too low to dispense!",
    ),
    ProductProfile(
        kind=CommandKind.COFFEE,
        prefix="C",
        telemetry_key="coffee",
        completion_message="Coffee dispensing completed",
        unavailable_message="Coffee stock is too low to dispense!",
    ),
    ProductProfile(
        kind=CommandKind.ICED_TEA,
        prefix="I",
        telemetry_key="icetea",
        completion_message="IcedTea dispensing completed",
        unavailable_message="IcedTea stock is too low to dispense!",
    ),
    ProductProfile(
        kind=CommandKind.GREEN_TEA,
        prefix="G",
        telemetry_key="greentea",
        completion_message="GreenTea dispensing completed",
        unavailable_message="GreenTea stock is too low to dispense!",
    ),
    ProductProfile(
        kind=CommandKind.CUP,
        prefix="U",
        completion_message="Cup dispensing completed",
        uses_agitator=False,
    ),
)


class ProductCatalog:
    """Indexed, read-only view over a set of product profiles."""

    def __init__(self, profiles: Iterable[ProductProfile] = DEFAULT_PRODUCTS) -> None:
        self._by_kind: Dict[CommandKind, ProductProfile] = {}
        self._by_prefix: Dict[str, ProductProfile] = {}
        for profile in profiles:
            if not profile.kind.is_dispensable:
                raise ValueError(f"{profile.kind.value} is not a dispensable kind")
            if len(profile.prefix) != 1 or profile.prefix.isspace():
                raise ValueError(
                    f"Prefix for {profile.label} must be a single non-space character"
                )
            prefix = profile.prefix.upper()
            if prefix in self._by_prefix:
                other = self._by_prefix[prefix]
                raise ValueError(
                    f"Prefix '{prefix}' is shared by {other.label} and {profile.label}"
                )
            if profile.kind in self._by_kind:
                raise ValueError(f"Duplicate product profile for {profile.label}")
            self._by_kind[profile.kind] = profile
            self._by_prefix[prefix] = profile

    def __iter__(self) -> Iterator[ProductProfile]:
        return iter(self._by_kind.values())

    def __len__(self) -> int:
        return len(self._by_kind)

    def __contains__(self, kind: object) -> bool:
        return kind in self._by_kind

    def get(self, kind: CommandKind) -> ProductProfile:
        try:
            return self._by_kind[kind]
        except KeyError:
            raise KeyError(f"No product profile for {kind.value}") from None

    def kind_for_prefix(self, character: str) -> CommandKind:
        profile = self._by_prefix.get(character.upper())
        return profile.kind if profile is not None else CommandKind.UNKNOWN

    def with_overrides(
        self,
        *,
        prefixes: Optional[Mapping[CommandKind, str]] = None,
        limits: Optional[Mapping[CommandKind, Optional[float]]] = None,
    ) -> "ProductCatalog":
        """Return a new catalog with prefixes and ceilings replaced per kind."""
        prefixes = prefixes or {}
        limits = limits or {}
        profiles = []
        for profile in self:
            updated = profile
            if profile.kind in prefixes:
                updated = replace(updated, prefix=prefixes[profile.kind])
            if profile.kind in limits:
                updated = replace(updated, max_duration_seconds=limits[profile.kind])
            profiles.append(updated)
        return ProductCatalog(profiles)
