"""
Variant policy — which derivatives each image type gets.

The table is built once at cold start from Settings and shared read-only by
every invocation.
"""
from __future__ import annotations

from collections.abc import Iterable, Mapping
from types import MappingProxyType

from pydantic import BaseModel, ConfigDict, PositiveInt

from imaging.constants import DEFAULT_POLICY_KEY


class VariantSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    max_width: PositiveInt


class VariantPolicy:
    """Immutable image type -> ordered variants lookup."""

    def __init__(
        self,
        table: Mapping[str, Iterable[VariantSpec]],
        *,
        canonical: str,
    ) -> None:
        if DEFAULT_POLICY_KEY not in table:
            raise ValueError(f"policy table needs a {DEFAULT_POLICY_KEY!r} entry")

        frozen: dict[str, tuple[VariantSpec, ...]] = {}
        for image_type, variants in table.items():
            variants = tuple(variants)
            names = [v.name for v in variants]
            if len(names) != len(set(names)):
                raise ValueError(f"duplicate variant names for {image_type!r}: {names}")
            if canonical not in names:
                raise ValueError(f"policy for {image_type!r} lacks the {canonical!r} variant")
            frozen[image_type] = variants

        self._table = MappingProxyType(frozen)
        self.canonical = canonical

    @classmethod
    def from_table(
        cls,
        raw: Mapping[str, Iterable[tuple[str, int]]],
        *,
        canonical: str,
    ) -> VariantPolicy:
        return cls(
            {
                image_type: [VariantSpec(name=name, max_width=width) for name, width in rows]
                for image_type, rows in raw.items()
            },
            canonical=canonical,
        )

    def resolve(self, image_type: str) -> tuple[VariantSpec, ...]:
        """Variants for ``image_type``; unknown types get the default entry."""
        return self._table.get(image_type, self._table[DEFAULT_POLICY_KEY])

    def is_canonical(self, variant: VariantSpec) -> bool:
        return variant.name == self.canonical

