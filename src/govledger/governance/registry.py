"""Governor registry: a keyed power store with a running total."""

from __future__ import annotations

from collections.abc import Iterable

from govledger.core.types import Governor, to_address


class GovernorRegistry:
    """Maps governor address to power.

    A power of zero means the address is not a governor and it is dropped
    from the store. ``total_power`` is maintained incrementally.
    """

    def __init__(self, governors: Iterable[Governor] | None = None) -> None:
        self._powers: dict[str, int] = {}
        self._total = 0
        for governor in governors or []:
            if governor.address in self._powers:
                raise ValueError(f"Duplicate governor {governor.address}")
            self.set_power(governor.address, governor.power)

    def power_of(self, address: str) -> int:
        return self._powers.get(to_address(address), 0)

    def is_governor(self, address: str) -> bool:
        return self.power_of(address) > 0

    @property
    def total_power(self) -> int:
        return self._total

    def set_power(self, address: str, power: int) -> int:
        """Set a governor's power, removing it when ``power`` is 0.

        Returns:
            The previous power.

        Raises:
            ValueError: If power is negative or not an integer.
        """
        if isinstance(power, bool) or not isinstance(power, int) or power < 0:
            raise ValueError(f"Power must be a non-negative integer, got {power!r}")

        address = to_address(address)
        previous = self._powers.pop(address, 0)
        if power:
            self._powers[address] = power
        self._total += power - previous
        return previous

    @property
    def governors(self) -> list[Governor]:
        """All governors sorted by address."""
        return [
            Governor(address=address, power=power)
            for address, power in sorted(self._powers.items())
        ]

    def snapshot(self) -> dict[str, int]:
        return dict(self._powers)

    def restore(self, powers: dict[str, int]) -> None:
        self._powers = dict(powers)
        self._total = sum(self._powers.values())

    def __contains__(self, address: object) -> bool:
        return isinstance(address, str) and address.lower() in self._powers

    def __len__(self) -> int:
        return len(self._powers)
