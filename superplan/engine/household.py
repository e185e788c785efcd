"""Household member records shared by the projection engines."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

from superplan.engine.rules.preservation import preservation_age as preservation_age_for

__all__ = ["Person"]


@dataclass(frozen=True)
class Person:
    """One member of a two-person household.

    Attributes:
      name: Label used in reports.
      current_age: Age in whole years at the projection start.
      current_balance: Retirement savings (super) balance today.
      annual_contribution: Declared yearly contribution while working.
      retirement_age: Age at which the person stops work (FIRE age).
      birth_year: Optional birth year used to derive the preservation age.
      preservation_age: Earliest age at which super can be drawn. Derived
        from ``birth_year`` when omitted.
      salary: Gross salary feeding the mandatory/voluntary contribution rules.
      keeps_working: Whether the person keeps earning while the partner
        bridges to preservation age.
      ongoing_salary: Net salary counted as household income while working.
    """

    name: str
    current_age: int
    current_balance: float
    annual_contribution: float = 0.0
    retirement_age: int = 60
    birth_year: int | None = None
    preservation_age: int | None = field(default=None)
    salary: float = 0.0
    keeps_working: bool = False
    ongoing_salary: float = 0.0

    def __post_init__(self) -> None:
        errors: list[str] = []
        if not str(self.name).strip():
            errors.append("name must be a non-empty string")
        if self.current_age < 0:
            errors.append("current_age must be >= 0")
        if self.retirement_age < 0:
            errors.append("retirement_age must be >= 0")
        if self.current_balance < 0.0:
            errors.append("current_balance must be >= 0")
        if self.annual_contribution < 0.0:
            errors.append("annual_contribution must be >= 0")
        if self.salary < 0.0 or self.ongoing_salary < 0.0:
            errors.append("salary fields must be >= 0")
        if errors:
            raise ValueError(f"person {self.name!r}: " + "; ".join(errors))
        if self.preservation_age is None:
            object.__setattr__(self, "preservation_age", preservation_age_for(self.birth_year))

    @property
    def access_age(self) -> int:
        """Preservation age as a concrete integer."""

        return int(self.preservation_age or preservation_age_for(self.birth_year))

    def age_in(self, year_offset: int) -> int:
        return self.current_age + int(year_offset)

    def is_working(self, age: int) -> bool:
        return age < self.retirement_age

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> Person:
        """Create a :class:`Person` from a YAML or JSON mapping.

        Args:
          payload: Mapping with at least ``name``, ``current_age`` and
            ``current_balance``.

        Returns:
          A validated :class:`Person`.
        """

        birth_year = payload.get("birth_year")
        preservation = payload.get("preservation_age")
        return cls(
            name=str(payload.get("name", "person")),
            current_age=int(payload["current_age"]),
            current_balance=float(payload.get("current_balance", 0.0)),
            annual_contribution=float(payload.get("annual_contribution", 0.0)),
            retirement_age=int(payload.get("retirement_age", payload.get("fire_age", 60))),
            birth_year=int(birth_year) if birth_year is not None else None,
            preservation_age=int(preservation) if preservation is not None else None,
            salary=float(payload.get("salary", 0.0)),
            keeps_working=bool(payload.get("keeps_working", False)),
            ongoing_salary=float(payload.get("ongoing_salary", 0.0)),
        )
