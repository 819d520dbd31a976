"""Entry-function payloads.

A ``TransactionPayload`` mirrors the node's JSON entry-function shape and is
converted to a BCS ``EntryFunction`` only when the transaction is signed.
Module addresses and type tags are checked on construction, so a payload
that exists can always be serialized.
"""

from dataclasses import dataclass, field

from aptos_sdk.account_address import AccountAddress
from aptos_sdk.bcs import Serializer
from aptos_sdk.transactions import EntryFunction, ModuleId, TransactionArgument
from aptos_sdk.transactions import TransactionPayload as BcsTransactionPayload
from aptos_sdk.type_tag import StructTag, TypeTag

ARGUMENT_ENCODERS = {
    "u8": Serializer.u8,
    "u64": Serializer.u64,
    "u128": Serializer.u128,
    "bool": Serializer.bool,
}


def parse_address(address: str) -> AccountAddress:
    """Parse a short or long hex account address.

    Raises:
        ValueError: Not a hex address of at most 32 bytes
    """
    try:
        return AccountAddress.from_str_relaxed(address)
    except (RuntimeError, ValueError) as e:
        raise ValueError(f"Invalid account address {address!r}: {e}") from e


def parse_type_tag(type_tag: str) -> TypeTag:
    """Parse a Move struct tag such as ``0x1::aptos_coin::AptosCoin``.

    Raises:
        ValueError: Malformed tag or address
    """
    try:
        return TypeTag(StructTag.from_str(type_tag))
    except (RuntimeError, ValueError, IndexError) as e:
        raise ValueError(f"Invalid type argument {type_tag!r}: {e}") from e


@dataclass(frozen=True)
class TransactionPayload:
    """Entry-function call.

    Attributes:
        function: Fully qualified name, e.g. ``0x1::managed_coin::register``
        type_arguments: Move type tags as strings
        arguments: Argument values
        argument_types: Move type for each argument (``u64`` by default)
    """

    function: str
    type_arguments: tuple[str, ...] = ()
    arguments: tuple = ()
    argument_types: tuple[str, ...] = field(default=())

    def __post_init__(self):
        if self.function.count("::") != 2:
            raise ValueError(f"Invalid entry function name: {self.function}")
        parse_address(self.function.split("::", 1)[0])
        for type_tag in self.type_arguments:
            parse_type_tag(type_tag)
        if not self.argument_types:
            object.__setattr__(self, "argument_types", ("u64",) * len(self.arguments))
        if len(self.argument_types) != len(self.arguments):
            raise ValueError("argument_types must match arguments")
        for arg_type in self.argument_types:
            if arg_type not in ARGUMENT_ENCODERS:
                raise ValueError(f"Unsupported argument type: {arg_type}")

    @property
    def module(self) -> str:
        return self.function.rsplit("::", 1)[0]

    @property
    def function_name(self) -> str:
        return self.function.rsplit("::", 1)[1]

    @property
    def module_id(self) -> ModuleId:
        address, name = self.module.split("::")
        return ModuleId(parse_address(address), name)

    def to_json(self) -> dict:
        """Node JSON representation (used for logging and simulation)."""
        return {
            "type": "entry_function_payload",
            "function": self.function,
            "type_arguments": list(self.type_arguments),
            "arguments": [str(a) if isinstance(a, int) and not isinstance(a, bool) else a
                          for a in self.arguments],
        }

    def to_bcs(self) -> BcsTransactionPayload:
        """Build the BCS payload for signing."""
        entry_function = EntryFunction(
            self.module_id,
            self.function_name,
            [parse_type_tag(t) for t in self.type_arguments],
            [
                TransactionArgument(value, ARGUMENT_ENCODERS[arg_type]).encode()
                for value, arg_type in zip(self.arguments, self.argument_types)
            ],
        )
        return BcsTransactionPayload(entry_function)


def register_coin_payload(coin_address: str) -> TransactionPayload:
    """Payload registering a CoinStore for ``coin_address`` on the sender."""
    return TransactionPayload(
        function="0x1::managed_coin::register",
        type_arguments=(coin_address,),
    )
