import argparse, sys
from pathlib import Path

from .config import HyperParams, InitializationType, NormalizationType
from .data import DataFormat
from .deterministic import set_deterministic
from .export import ModelExporter
from .filesystem import LocalFilesystem
from .initialization import read_matrix_tsv
from .jsonlog import log
from .matrix import Storage
from .model import ModelParams
from .persistence import save_model
from .trainer import ProtoNNTrainer

# (flags, dest, type, help) for every hyperparameter exposed on the command line
_HYPERPARAM_FLAGS = [
    (("-d", "--projection-dim"), "d", int, "embedding dimension"),
    (("-D", "--input-dim"), "D", int, "input feature dimension"),
    (("-l", "--labels"), "l", int, "number of labels"),
    (("-m", "--prototypes"), "m", int, "number of prototypes"),
    (("-r", "--ntrain"), "ntrain", int, "training samples (0 = infer)"),
    (("-e", "--ntest"), "ntest", int, "test samples (0 = infer)"),
    (("-W", "--lambda-w"), "lambda_w", float, "fraction of W entries kept"),
    (("-Z", "--lambda-z"), "lambda_z", float, "fraction of Z entries kept"),
    (("-B", "--lambda-b"), "lambda_b", float, "fraction of B entries kept"),
    (("-g", "--gamma-numerator"), "gamma_numerator", float, "median heuristic numerator"),
    (("-b", "--batch-size"), "batch_size", int, "mini-batch size"),
    (("-E", "--epochs"), "epochs", int, "epochs per parameter per iteration"),
    (("-T", "--iters"), "iters", int, "outer iterations"),
    (("-R", "--seed"), "seed", int, "random seed"),
    (("--regularizer",), "regularizer", float, "L2 weight, scaled by each lambda"),
]


def _hyperparams(args) -> HyperParams:
    overrides = {dest: getattr(args, dest) for _, dest, _, _ in _HYPERPARAM_FLAGS}
    overrides["normalization"] = args.normalization
    overrides["initialization"] = args.initialization
    overrides["z_storage"] = args.z_storage
    if args.config:
        return HyperParams.from_yaml(args.config, **overrides)
    return HyperParams(**{k: v for k, v in overrides.items() if v is not None})


def cmd_train(args, command_line):
    hp = _hyperparams(args)
    if args.deterministic: set_deterministic()
    log("train_start", input_dir=args.input_dir, format=args.format, seed=hp.seed)
    trainer = ProtoNNTrainer.from_files(hp, args.input_dir, args.format, command_line=command_line)
    stats = trainer.train()
    last = stats[-1]
    log("train_done", out=str(trainer.outdir), objective=last.objective,
        train_accuracy=last.train_accuracy, test_accuracy=last.test_accuracy)
    if args.save:
        save_model(trainer.params, trainer.hyperparams, args.save)
        log("model_saved", out=args.save)
    if args.export:
        size = trainer.write_model(args.export)
        log("model_exported", out=args.export, bytes=size)
    return 0


def cmd_export(args, command_line):
    model_dir = Path(args.model_dir)
    W, B, Z = (read_matrix_tsv(model_dir / name).T for name in ("W", "B", "Z"))
    gamma = float(read_matrix_tsv(model_dir / "gamma")[0, 0])
    exporter = ModelExporter(ModelParams.from_arrays(W, B, Z), gamma)
    size = exporter.write_model(LocalFilesystem(), args.out)
    log("model_exported", out=args.out, bytes=size)
    return 0


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser("protonn")
    sub = ap.add_subparsers(dest="cmd", required=True)

    ap_tr = sub.add_parser("train", help="Train from train.txt/test.txt in an input directory")
    ap_tr.add_argument("-I", "--input-dir", required=True)
    ap_tr.add_argument("-F", "--format", choices=[f.value for f in DataFormat], default="libsvm")
    ap_tr.add_argument("--config", help="YAML file with hyperparameters; flags override it")
    for flags, dest, typ, help_text in _HYPERPARAM_FLAGS:
        ap_tr.add_argument(*flags, dest=dest, type=typ, help=help_text)
    ap_tr.add_argument("-N", "--normalization", choices=[n.value for n in NormalizationType])
    ap_tr.add_argument("-P", "--initialization", choices=[i.value for i in InitializationType])
    ap_tr.add_argument("--z-storage", choices=[s.value for s in Storage])
    ap_tr.add_argument("--deterministic", action="store_true",
                       help="pin BLAS to one thread; export OMP_NUM_THREADS=1 etc. before starting "
                            "for libraries numpy has already loaded (the seed alone fixes all random draws)")
    ap_tr.add_argument("--save", help="directory for model.npz/config.json")
    ap_tr.add_argument("--export", help="file for the binary model export")
    ap_tr.set_defaults(func=cmd_train)

    ap_ex = sub.add_parser("export", help="Binary export of a results directory (W, B, Z, gamma)")
    ap_ex.add_argument("--model-dir", required=True)
    ap_ex.add_argument("--out", required=True)
    ap_ex.set_defaults(func=cmd_export)
    return ap


def main(argv=None):
    argv = sys.argv[1:] if argv is None else list(argv)
    args = build_parser().parse_args(argv)
    command_line = " ".join(["protonn", *argv])
    try:
        return args.func(args, command_line)
    except (ValueError, OSError) as e:
        log("error", level="error", error=str(e), type=type(e).__name__)
        print(f"protonn: error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
