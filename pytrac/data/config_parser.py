"""Control file parser.

Reads ``NAME = VALUE`` control files into a :class:`ControlConfig`.
Names are case-insensitive, ``#`` starts a comment, and the tracked
quantities are listed as ``NQ`` plus ``QNT_NAME[i]`` (and optional
``QNT_UNIT[i]``) entries. Explicit overrides take precedence over the file,
as command-line arguments do::

    DT_MOD = 120
    NQ = 2
    QNT_NAME[0] = m
    QNT_NAME[1] = t
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Mapping

from pytrac.core.models import (
    ConfigParseError,
    ControlConfig,
    QuantityMap,
)

logger = logging.getLogger(__name__)

_LINE_RE = re.compile(r"^\s*([A-Za-z_][A-Za-z0-9_]*(?:\[\d+\])?)\s*=\s*(.*?)\s*$")
_INDEXED_RE = re.compile(r"^(QNT_NAME|QNT_UNIT)\[(\d+)\]$")

# Time values at or beyond this magnitude mean "not set"
_UNSET_TIME = 1e99

# Control name → (ControlConfig field, type)
_KEY_MAP: dict[str, tuple[str, type]] = {
    "DIRECTION": ("direction", int),
    "T_START": ("t_start", float),
    "T_STOP": ("t_stop", float),
    "DT_MOD": ("dt_mod", float),
    "DT_MET": ("dt_met", float),
    "TURB_DX_TROP": ("turb_dx_trop", float),
    "TURB_DX_STRAT": ("turb_dx_strat", float),
    "TURB_DZ_TROP": ("turb_dz_trop", float),
    "TURB_DZ_STRAT": ("turb_dz_strat", float),
    "TURB_MESOX": ("turb_mesox", float),
    "TURB_MESOZ": ("turb_mesoz", float),
    "TDEC_TROP": ("tdec_trop", float),
    "TDEC_STRAT": ("tdec_strat", float),
    "ISOSURF": ("isosurf", int),
    "BALLOON": ("balloon", str),
    "MET_DT_OUT": ("met_dt_out", float),
    "PSC_H2O": ("psc_h2o", float),
    "PSC_HNO3": ("psc_hno3", float),
    "RNG_SEED": ("rng_seed", int),
    "NUM_THREADS": ("num_threads", int),
    "USE_GPU": ("use_gpu", bool),
    "ATM_BASENAME": ("atm_basename", str),
    "ATM_DT_OUT": ("atm_dt_out", float),
}


def _parse_value(value: str, kind: type, line_number: int | None, name: str):
    if kind is str:
        return value if value and value != "-" else None
    try:
        if kind is bool:
            return int(float(value)) != 0
        if kind is int:
            return int(float(value))
        return float(value)
    except ValueError:
        raise ConfigParseError(
            f"Cannot parse {kind.__name__} '{value}' for {name}",
            line_number=line_number,
            expected=f"{kind.__name__} ({name})",
        )


def _scan(text: str) -> dict[str, tuple[str, int]]:
    """Collect ``NAME -> (value, line_number)``; the last assignment wins."""
    entries: dict[str, tuple[str, int]] = {}
    for number, raw in enumerate(text.splitlines(), start=1):
        line = raw.split("#", 1)[0]
        if not line.strip():
            continue
        match = _LINE_RE.match(line)
        if match is None:
            raise ConfigParseError(
                f"Malformed control line '{raw.strip()}'",
                line_number=number,
                expected="NAME = VALUE",
            )
        entries[match.group(1).upper()] = (match.group(2), number)
    return entries


def parse_control(text: str,
                  overrides: Mapping[str, object] | None = None) -> ControlConfig:
    """Parse control file text into a :class:`ControlConfig`.

    Parameters
    ----------
    text : str
        Full text of the control file.
    overrides : mapping, optional
        ``NAME -> value`` pairs applied on top of the file.

    Returns
    -------
    ControlConfig

    Raises
    ------
    ConfigParseError
        On malformed lines, unparseable values or an inconsistent
        quantity list.
    """
    entries = _scan(text)
    for name, value in (overrides or {}).items():
        entries[str(name).upper()] = (str(value), None)

    kwargs: dict = {}
    names: dict[int, str] = {}
    units: dict[int, str] = {}
    nq = 0
    nq_line = None
    for name, (value, number) in entries.items():
        indexed = _INDEXED_RE.match(name)
        if name in _KEY_MAP:
            field, kind = _KEY_MAP[name]
            kwargs[field] = _parse_value(value, kind, number, name)
        elif name == "NQ":
            nq = _parse_value(value, int, number, name)
            nq_line = number
        elif indexed is not None:
            target = names if indexed.group(1) == "QNT_NAME" else units
            target[int(indexed.group(2))] = value
        else:
            logger.debug(f"Ignoring unknown control parameter {name}")

    for key in ("t_start", "t_stop"):
        if key in kwargs and abs(kwargs[key]) >= _UNSET_TIME:
            kwargs[key] = None

    missing = [i for i in range(nq) if i not in names]
    if nq < 0 or missing:
        raise ConfigParseError(
            f"NQ = {nq} but QNT_NAME missing for indices {missing}",
            line_number=nq_line,
            expected="QNT_NAME[i] for i in 0..NQ-1",
        )
    extra = [i for i in names if i >= nq]
    if extra:
        logger.warning(f"Ignoring QNT_NAME entries beyond NQ={nq}: {sorted(extra)}")

    kwargs["quantities"] = QuantityMap(
        [names[i] for i in range(nq)],
        [units.get(i, "-") for i in range(nq)],
    )
    return ControlConfig(**kwargs)


def load_control(path: str | Path,
                 overrides: Mapping[str, object] | None = None) -> ControlConfig:
    """Read and parse a control file from *path*."""
    text = Path(path).read_text(encoding="utf-8")
    config = parse_control(text, overrides)
    logger.info(f"Loaded control file {path}")
    return config
