# cskel3d/cli.py
"""Консольні команди: cskel3d-todelaunay і cskel3d-skeletonize."""
from __future__ import annotations
import argparse
import logging
import sys
from typing import Optional, Sequence

from .errors import InvalidParameter, SkeletonError
from .io import load_mesh, save_mesh, save_skeleton
from .pipeline import SkeletonConfig, skeletonize, to_delaunay

logger = logging.getLogger(__name__)


def _setup_logging(verbose: int) -> None:
    level = logging.WARNING if verbose <= 0 else logging.INFO if verbose == 1 else logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _fail(where: str, exc: BaseException) -> None:
    print(f"error: {where}: {exc}", file=sys.stderr)


def _run(func, args, infile: str) -> int:
    """Виконати етап і перетворити винятки на код виходу."""
    try:
        func(args)
    except InvalidParameter as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    except OSError as exc:
        _fail(exc.filename or infile, exc.strerror or exc)
        return 1
    except SkeletonError as exc:
        if getattr(exc, "path", None):
            print(f"error: {exc}", file=sys.stderr)
        else:
            _fail(infile, exc)
        return 1
    except RuntimeError as exc:
        # внутрішній збій побудови (наприклад, точка поза супер-тетрою)
        _fail(infile, exc)
        return 1
    return 0


# ---------- todelaunay ----------
def _todelaunay(args) -> None:
    config = SkeletonConfig(flip_angle=args.flip_angle, max_conform_rounds=args.max_rounds,
                            backend=args.backend, seed=args.seed)
    pts, faces = load_mesh(args.meshinfile)
    surface, mesh = to_delaunay(pts, faces, config)
    save_mesh(args.objoutfile, surface.points, surface.faces())
    logger.info("wrote %s: %d vertices, %d faces", args.objoutfile, len(surface.points), len(surface.faces_list))
    if args.vtk:
        mesh.write_vtk_unstructured(args.vtk)
        logger.info("wrote %s", args.vtk)


def main_todelaunay(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="cskel3d-todelaunay",
        description="Convert a closed surface mesh into a Delaunay-conforming mesh.")
    parser.add_argument("--meshinfile", required=True, help="input mesh (.obj or .off)")
    parser.add_argument("--objoutfile", required=True, help="output mesh (.obj or .off)")
    parser.add_argument("--flip-angle", type=float, default=20.0,
                        help="max angle in degrees between faces for an edge flip (default: 20)")
    parser.add_argument("--max-rounds", type=int, default=50, help="max conformance rounds (default: 50)")
    parser.add_argument("--backend", choices=("internal", "scipy"), default="internal")
    parser.add_argument("--seed", type=int, default=0, help="insertion order seed (default: 0)")
    parser.add_argument("--vtk", help="also write the tetrahedralization as legacy VTK")
    parser.add_argument("-v", "--verbose", action="count", default=0)
    args = parser.parse_args(argv)
    _setup_logging(args.verbose)
    return _run(_todelaunay, args, args.meshinfile)


# ---------- skeletonize ----------
def _skeletonize(args) -> None:
    config = SkeletonConfig(epsilon=args.epsilon, relative=args.relative, backend=args.backend,
                            seed=args.seed, strict=args.strict, probe=args.probe)
    pts, faces = load_mesh(args.objinfile)
    res = skeletonize(pts, faces, config)
    save_skeleton(res.skeleton, args.pathout, sheets_name=args.skeloutfile, curves_name=args.curveoutfile,
                  mtl=not args.no_mtl, poles=args.poles)
    if args.png:
        from .plot import plot_skeleton
        plot_skeleton(res.skeleton, args.png, surface=res.surface)
        logger.info("wrote %s", args.png)
    counts = res.skeleton.counts()
    logger.info("skeleton: %d sheet(s), %d curve(s), %d junction(s) (raw: %d, %d, %d)",
                counts["sheets"], counts["curves"], counts["junctions"],
                res.raw_counts["sheets"], res.raw_counts["curves"], res.raw_counts["junctions"])


def main_skeletonize(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="cskel3d-skeletonize",
        description="Extract a pruned sheet skeleton from a Delaunay-conforming closed mesh.")
    parser.add_argument("--objinfile", required=True, help="input mesh (.obj or .off), output of cskel3d-todelaunay")
    parser.add_argument("--epsilon", type=float, required=True, help="pruning tolerance (>= 0)")
    parser.add_argument("--pathout", required=True, help="output directory")
    parser.add_argument("--relative", action="store_true", help="epsilon is a fraction of the bounding box diagonal")
    parser.add_argument("--skeloutfile", default="sheets.obj", help="sheets file name (default: sheets.obj)")
    parser.add_argument("--curveoutfile", default="curves.obj", help="curves file name (default: curves.obj)")
    parser.add_argument("--no-mtl", action="store_true", help="do not write sheet materials")
    parser.add_argument("--poles", action="store_true", help="also write interior poles (poles.obj)")
    parser.add_argument("--png", help="save a plot of the skeleton")
    parser.add_argument("--strict", action="store_true", help="fail on a non-manifold surface")
    parser.add_argument("--probe", choices=("centroid", "circumcenter"), default="centroid",
                        help="ray parity probe point (default: centroid)")
    parser.add_argument("--backend", choices=("internal", "scipy"), default="internal")
    parser.add_argument("--seed", type=int, default=0, help="insertion order seed (default: 0)")
    parser.add_argument("-v", "--verbose", action="count", default=0)
    args = parser.parse_args(argv)
    _setup_logging(args.verbose)
    return _run(_skeletonize, args, args.objinfile)


STAGES = {"todelaunay": main_todelaunay, "skeletonize": main_skeletonize}


def main(argv: Optional[Sequence[str]] = None) -> int:
    """python -m cskel3d.cli {todelaunay,skeletonize} ..."""
    argv = list(sys.argv[1:] if argv is None else argv)
    if not argv or argv[0] not in STAGES:
        print(f"usage: python -m cskel3d.cli {{{','.join(STAGES)}}} [options]", file=sys.stderr)
        return 2
    return STAGES[argv[0]](argv[1:])


if __name__ == "__main__":
    sys.exit(main())
