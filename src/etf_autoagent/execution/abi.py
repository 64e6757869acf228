"""Contract call encoding for human-readable and JSON ABI fragments.

Calldata is the 4-byte keccak selector of the canonical signature followed
by the ABI encoding of the arguments. JSON fragments go through web3's
contract interface; human-readable signatures are parsed here and encoded
with ``eth_abi``.
"""

import re
from typing import Any, Union

from eth_abi import encode
from web3 import Web3


class AbiEncodingError(ValueError):
    """Raised when a method cannot be found in an ABI or its arguments do not fit."""


_FUNCTION_RE = re.compile(r"^\s*function\s+(\w+)\s*\((.*?)\)")
_MODIFIERS = {"memory", "calldata", "storage", "payable", "indexed"}
_INT_ALIASES = {"uint": "uint256", "int": "int256"}

# Offline instance; only the codec is used.
_W3 = Web3()


def _canonical_type(abi_type: str) -> str:
    base, sep, suffix = abi_type.partition("[")
    base = _INT_ALIASES.get(base, base)
    return base + sep + suffix


def _parse_human_readable(signature: str) -> tuple[str, list[str]]:
    match = _FUNCTION_RE.match(signature)
    if not match:
        raise AbiEncodingError(f"Not a function signature: {signature!r}")
    name, raw_params = match.group(1), match.group(2).strip()
    if "(" in raw_params:
        raise AbiEncodingError(
            f"Tuple parameters need a JSON ABI fragment: {signature!r}"
        )
    types = []
    if raw_params:
        for param in raw_params.split(","):
            tokens = [t for t in param.split() if t not in _MODIFIERS]
            if not tokens:
                raise AbiEncodingError(f"Empty parameter in {signature!r}")
            types.append(_canonical_type(tokens[0]))
    return name, types


def _json_param_type(param: dict[str, Any]) -> str:
    abi_type = param.get("type", "")
    if abi_type.startswith("tuple"):
        inner = ",".join(_json_param_type(c) for c in param.get("components", []))
        return f"({inner}){abi_type[len('tuple'):]}"
    return _canonical_type(abi_type)


def function_entries(abi: list[Union[str, dict[str, Any]]]) -> list[tuple[str, list[str]]]:
    """Lists ``(name, input types)`` for every function in an ABI.

    Args:
        abi: Human-readable signatures, JSON ABI fragment dicts, or a mix.

    Returns:
        One entry per function; events and errors are skipped.
    """
    entries = []
    for item in abi:
        if isinstance(item, str):
            if item.strip().startswith("function"):
                entries.append(_parse_human_readable(item))
        elif isinstance(item, dict):
            if item.get("type", "function") != "function" or "name" not in item:
                continue
            types = [_json_param_type(p) for p in item.get("inputs", [])]
            entries.append((item["name"], types))
        else:
            raise AbiEncodingError(f"Unsupported ABI entry: {item!r}")
    return entries


def _coerce(abi_type: str, value: Any) -> Any:
    if abi_type.endswith("]"):
        inner = abi_type[: abi_type.rindex("[")]
        if not isinstance(value, (list, tuple)):
            raise AbiEncodingError(f"Expected a list for {abi_type}, got {value!r}")
        return [_coerce(inner, v) for v in value]
    if abi_type.startswith("("):
        return tuple(value)
    if abi_type.startswith(("uint", "int")):
        if isinstance(value, bool):
            raise AbiEncodingError(f"Expected an integer for {abi_type}")
        return int(value, 0) if isinstance(value, str) else int(value)
    if abi_type == "address":
        return Web3.to_checksum_address(value)
    if abi_type == "bool":
        if isinstance(value, str):
            return value.strip().lower() == "true"
        return bool(value)
    if abi_type.startswith("bytes") and isinstance(value, str):
        return bytes.fromhex(value[2:] if value.startswith("0x") else value)
    return value


def _canonical_param(param: dict[str, Any], index: int = 0) -> dict[str, Any]:
    # web3 binds positional args by input name; unnamed inputs get one.
    canonical = {"name": param.get("name") or f"arg{index}", "type": param.get("type", "")}
    if canonical["type"].startswith("tuple"):
        canonical["components"] = [
            _canonical_param(c, i) for i, c in enumerate(param.get("components", []))
        ]
    else:
        canonical["type"] = _canonical_type(canonical["type"])
    return canonical


def _coerce_json(param: dict[str, Any], value: Any) -> Any:
    abi_type = param["type"]
    if not abi_type.startswith("tuple"):
        return _coerce(abi_type, value)
    if abi_type.endswith("]"):
        if not isinstance(value, (list, tuple)):
            raise AbiEncodingError(f"Expected a list for {abi_type}, got {value!r}")
        inner = {**param, "type": abi_type[: abi_type.rindex("[")]}
        return [_coerce_json(inner, v) for v in value]
    components = param["components"]
    if isinstance(value, dict):
        value = [value[c["name"]] for c in components]
    if len(value) != len(components):
        raise AbiEncodingError(f"Expected {len(components)} tuple fields, got {value!r}")
    return tuple(_coerce_json(c, v) for c, v in zip(components, value))


def _find_function(
    abi: list[Union[str, dict[str, Any]]], method_name: str, arity: int
) -> Union[tuple[str, list[str]], dict[str, Any]]:
    for item in abi:
        if isinstance(item, dict):
            if item.get("type", "function") != "function" or item.get("name") != method_name:
                continue
            if len(item.get("inputs", [])) == arity:
                return item
        else:
            for name, types in function_entries([item]):
                if name == method_name and len(types) == arity:
                    return name, types
    raise AbiEncodingError(f"No function {method_name} taking {arity} arguments in ABI")


def _encode_json_fragment(fragment: dict[str, Any], params: list[Any]) -> str:
    inputs = [_canonical_param(p, i) for i, p in enumerate(fragment.get("inputs", []))]
    args = [_coerce_json(p, v) for p, v in zip(inputs, params)]
    contract = _W3.eth.contract(
        abi=[
            {
                "type": "function",
                "name": fragment["name"],
                "inputs": inputs,
                "outputs": [],
                "stateMutability": fragment.get("stateMutability", "nonpayable"),
            }
        ]
    )
    return contract.encode_abi(fragment["name"], args=args)


def _encode_signature(method_name: str, types: list[str], params: list[Any]) -> str:
    args = [_coerce(t, v) for t, v in zip(types, params)]
    selector = Web3.keccak(text=f"{method_name}({','.join(types)})")[:4]
    return "0x" + (bytes(selector) + encode(types, args)).hex()


def encode_function_call(
    abi: list[Union[str, dict[str, Any]]], method_name: str, params: list[Any]
) -> str:
    """Builds hex calldata for a contract method call.

    JSON fragments are encoded by web3's contract interface. Human-readable
    signatures are parsed here and encoded with ``eth_abi``.

    Args:
        abi: Human-readable signatures or JSON ABI fragments.
        method_name: Function to call. Overloads are resolved by arity.
        params: Positional arguments; numeric strings are accepted for
            integer types.

    Returns:
        ``0x``-prefixed calldata.

    Raises:
        AbiEncodingError: If the method is missing or the arguments do not
            encode.
    """
    match = _find_function(abi, method_name, len(params))
    try:
        if isinstance(match, dict):
            data = _encode_json_fragment(match, params)
        else:
            data = _encode_signature(method_name, match[1], params)
    except AbiEncodingError:
        raise
    except Exception as e:
        raise AbiEncodingError(f"Failed to encode {method_name}: {e}") from e
    return data if data.startswith("0x") else "0x" + data
