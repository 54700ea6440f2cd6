from __future__ import annotations

import argparse
import logging
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

from codec import save_raster
from contaminate import DEFAULT_SEED, distort
from errors import ContaminateError
from state import ContaminateSession
from styles import STYLES

# =============== Logging ===============
log = logging.getLogger("contaminate")


def setup_logging(verbosity: int = 0) -> None:
    level = [logging.WARNING, logging.INFO, logging.DEBUG][min(verbosity, 2)]
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(message)s",
        datefmt="%H:%M:%S",
    )


# =============== Small CLI helpers ===============
def _coerce(v: str) -> Any:
    if v.isdigit():
        return int(v)
    try:
        return float(v)
    except ValueError:
        low = v.lower()
        if low in ("true", "false"):
            return low == "true"
    return v


def _parse_kv_pairs(pairs: Optional[List[str]]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    if not pairs:
        return out
    for p in pairs:
        if "=" in p:
            k, v = p.split("=", 1)
            out[k.strip()] = _coerce(v.strip())
    return out


def _multiplier_overrides(raw_extras: Dict[str, Any]) -> Dict[str, float]:
    """Keep only style-keyed extras (e.g. darkest=2.5); warn about the rest."""
    out: Dict[str, float] = {}
    for k, v in raw_extras.items():
        key = k.strip().lower()
        if key not in STYLES.names():
            log.warning("Ignoring unknown extra '%s' (multiplier keys: %s)", k, ", ".join(STYLES.names()))
            continue
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            raise SystemExit(f"Multiplier for '{k}' must be a number, got {v!r}")
        out[key] = float(v)
    return out


def _add_distort_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--scale", type=float, default=40.0, help="Displacement spread (sd = scale * multiplier * width / 4000).")
    p.add_argument("--bias", type=float, default=0.0, help="Mean displacement in pixels.")
    p.add_argument("--style", choices=STYLES.names(), default="always", help="Pixel selection policy.")
    p.add_argument("--seed", type=int, default=DEFAULT_SEED, help=f"RNG seed (default {DEFAULT_SEED}).")
    p.add_argument("--max-size", type=int, default=None, help="Downscale input longest side before processing.")
    p.add_argument("--extra", nargs="*",
                   help="Style multiplier overrides as style=value, e.g. darkest=2.5 mix=3.")


# =============== CLI ===============
def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Contaminate an image by Gaussian pixel displacement")
    p.add_argument("-v", "--verbose", action="count", default=0, help="Increase verbosity (-v, -vv).")

    sub = p.add_subparsers(dest="cmd", required=True)

    lp = sub.add_parser("list", help="List styles and their default spread multipliers.")
    lp.set_defaults(func=cmd_list)

    rp = sub.add_parser("run", help="Load an image, contaminate it and save the result.")
    rp.add_argument("--url", required=True, help="HTTP(S) URL, file:// URL, or local path.")
    rp.add_argument("--out", type=Path, required=True, help="Output image file (png/jpg/webp/bmp).")
    _add_distort_args(rp)
    rp.set_defaults(func=cmd_run)

    pp = sub.add_parser("preview", help="Write a size-bounded preview of an image.")
    pp.add_argument("--url", required=True)
    pp.add_argument("--out", type=Path, required=True)
    pp.add_argument("--max-dim", type=int, default=1024, help="Longest side of the preview.")
    pp.set_defaults(func=cmd_preview)

    bp = sub.add_parser("bench", help="Micro-benchmark the effect on one image.")
    bp.add_argument("--url", required=True)
    bp.add_argument("--runs", type=int, default=3)
    _add_distort_args(bp)
    bp.set_defaults(func=cmd_bench)

    return p


# =============== Commands ===============
def cmd_list(_args: argparse.Namespace) -> int:
    print("Available styles:")
    for name in STYLES.names():
        print(f"  {name:<10} multiplier {STYLES.get(name).multiplier:g}")
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    try:
        multipliers = _multiplier_overrides(_parse_kv_pairs(args.extra))
        session = ContaminateSession(seed=args.seed)
        session.load(args.url, max_size=args.max_size)
        session.generate(args.scale, args.bias, args.style, multipliers=multipliers)
        session.save(args.out)
        return 0
    except MemoryError:
        log.error("MemoryError: try a smaller --max-size.")
        return 1
    except ContaminateError as e:
        log.error("Failed: %s", e)
        return 1
    except Exception as e:
        log.exception("Failed: %s", e)
        return 1


def cmd_preview(args: argparse.Namespace) -> int:
    try:
        session = ContaminateSession()
        session.load(args.url)
        save_raster(session.preview("input", args.max_dim), args.out)
        return 0
    except ContaminateError as e:
        log.error("Preview failed: %s", e)
        return 1
    except Exception as e:
        log.exception("Preview failed: %s", e)
        return 1


def cmd_bench(args: argparse.Namespace) -> int:
    try:
        multipliers = _multiplier_overrides(_parse_kv_pairs(args.extra))
        session = ContaminateSession(seed=args.seed)
        src = session.load(args.url, max_size=args.max_size)

        times = []
        for _ in range(max(1, args.runs)):
            t0 = time.perf_counter()
            _ = distort(src, args.scale, args.bias, args.style, args.seed, multipliers=multipliers)
            times.append(time.perf_counter() - t0)
        avg = sum(times) / len(times)
        print(
            f"{args.style} {src.width}x{src.height}: {len(times)} run(s) — avg {avg*1000:.2f} ms, "
            f"min {min(times)*1000:.2f} ms, max {max(times)*1000:.2f} ms"
        )
        return 0
    except ContaminateError as e:
        log.error("Bench failed: %s", e)
        return 1
    except Exception as e:
        log.exception("Bench failed: %s", e)
        return 1


# =============== Entry ===============
def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
