"""Default mutator catalog shipped with the coordinator."""

from __future__ import annotations

from .capability import StrategyCapability
from .registry import MutatorRegistry, RegistryBuilder

REMOVE_SWITCH_KEYS = 100

DEFAULT_GROUP = (
    "INVERT_NEGS",
    "RETURN_VALS",
    "MATH",
    "VOID_METHOD_CALLS",
    "NEGATE_CONDITIONALS",
    "CONDITIONALS_BOUNDARY",
    "INCREMENTS",
)

# (entry name, capability id, description) in registration order
_SINGLE_MUTATORS: list[tuple[str, str, str]] = [
    ("INVERT_NEGS", "mutators.InvertNegs", "Inverts negation of integer and floating point numbers"),
    ("RETURN_VALS", "mutators.ReturnVals", "Mutates the return values of methods"),
    ("INLINE_CONSTS", "mutators.InlineConstant", "Mutates inline integer and floating point constants"),
    ("MATH", "mutators.Math", "Replaces binary arithmetic operations"),
    ("VOID_METHOD_CALLS", "mutators.VoidMethodCall", "Removes calls to void methods"),
    ("NEGATE_CONDITIONALS", "mutators.NegateConditionals", "Negates conditionals"),
    (
        "CONDITIONALS_BOUNDARY",
        "mutators.ConditionalsBoundary",
        "Replaces relational operators with their boundary counterpart",
    ),
    ("INCREMENTS", "mutators.Increments", "Mutates increments and decrements of local variables"),
    ("REMOVE_INCREMENTS", "mutators.experimental.RemoveIncrements", "Removes local variable increments"),
    ("NON_VOID_METHOD_CALLS", "mutators.NonVoidMethodCall", "Removes calls to non void methods"),
    ("CONSTRUCTOR_CALLS", "mutators.ConstructorCall", "Replaces constructor calls with null values"),
]

# Equality (==, !=) or ordering (<, <=, >, >=) checks; keep the if or the else branch.
_REMOVE_CONDITIONALS: list[tuple[str, str, str]] = [
    ("REMOVE_CONDITIONALS_EQ_IF", "mutators.RemoveConditional_EQUAL_IF", "Forces equality checks to take the if branch"),
    ("REMOVE_CONDITIONALS_EQ_ELSE", "mutators.RemoveConditional_EQUAL_ELSE", "Forces equality checks to take the else branch"),
    ("REMOVE_CONDITIONALS_ORD_IF", "mutators.RemoveConditional_ORDER_IF", "Forces ordering checks to take the if branch"),
    ("REMOVE_CONDITIONALS_ORD_ELSE", "mutators.RemoveConditional_ORDER_ELSE", "Forces ordering checks to take the else branch"),
]

_EXPERIMENTAL: list[tuple[str, str, str]] = [
    (
        "EXPERIMENTAL_MEMBER_VARIABLE",
        "mutators.experimental.MemberVariable",
        "Removes assignments to member variables",
    ),
    ("EXPERIMENTAL_SWITCH", "mutators.experimental.Switch", "Swaps labels in switch statements"),
    (
        "EXPERIMENTAL_ARGUMENT_PROPAGATION",
        "mutators.experimental.ArgumentPropagation",
        "Replaces a method call with one of its parameters of matching type",
    ),
    (
        "EXPERIMENTAL_NAKED_RECEIVER",
        "mutators.experimental.NakedReceiver",
        "Replaces a method call with its receiver",
    ),
]

_OPERATORS: list[tuple[str, str, str]] = [
    ("OBBN", "mutators.OBBN", "Swaps or removes bitwise operators"),
    ("ROR", "mutators.ROR", "Replaces relational operators"),
    ("AOD", "mutators.AOD", "Replaces an arithmetic operation with its first operand"),
    ("AOD2", "mutators.AOD2", "Replaces an arithmetic operation with its second operand"),
    ("AOR", "mutators.AOR", "Replaces arithmetic operators"),
    ("UOI", "mutators.UOI", "Inserts unary increment and decrement operators"),
    ("ABS", "mutators.ABS", "Negates numeric local variables and fields"),
    ("CRCR", "mutators.CRCR", "Replaces inline constants with related values"),
]


def _capability(entry: str, cap_id: str, description: str) -> StrategyCapability:
    return StrategyCapability(id=cap_id, name=entry, description=description)


def remove_switch_capabilities(keys: int = REMOVE_SWITCH_KEYS) -> list[StrategyCapability]:
    """One capability per switch key that can be removed."""
    return [
        StrategyCapability(
            id=f"mutators.experimental.RemoveSwitch_{key}",
            name="REMOVE_SWITCH",
            description=f"Removes switch case {key}",
        )
        for key in range(keys)
    ]


def build_default_registry() -> MutatorRegistry:
    """Registry with every shipped mutator plus the DEFAULTS, STRONGER and ALL groups."""
    builder = RegistryBuilder()

    for entry, cap_id, description in _SINGLE_MUTATORS:
        builder.register(entry, _capability(entry, cap_id, description))

    for entry, cap_id, description in _REMOVE_CONDITIONALS:
        builder.register(entry, _capability(entry, cap_id, description))
    builder.add_composite("REMOVE_CONDITIONALS", [e for e, _, _ in _REMOVE_CONDITIONALS])

    for entry, cap_id, description in _EXPERIMENTAL + _OPERATORS:
        builder.register(entry, _capability(entry, cap_id, description))

    builder.register_group("REMOVE_SWITCH", remove_switch_capabilities())
    builder.add_composite("DEFAULTS", DEFAULT_GROUP)
    builder.add_composite(
        "STRONGER", ["DEFAULTS", "REMOVE_CONDITIONALS_EQ_ELSE", "EXPERIMENTAL_SWITCH"]
    )
    builder.add_all()
    return builder.build()
