"""Human-readable run report (``runInfo``) for a finished training run."""

from __future__ import annotations
from pathlib import Path

from .config import INITIALIZATION_REPORT_NAMES, NORMALIZATION_REPORT_NAMES, HyperParams


def format_report(hp: HyperParams, command_line: str, stats) -> str:
    lines = [
        f"d = {hp.d}",
        f"k = {hp.k} (if this value is 0, k-means per class was not used for initialization)",
        f"m = {hp.m}",
        f"lambdaW = {hp.lambda_w}",
        f"lambdaZ = {hp.lambda_z}",
        f"lambdaB = {hp.lambda_b}",
        f"gammaNumerator = {hp.gamma_numerator}",
        f"gamma = {hp.gamma}",
        f"batch-size = {hp.batch_size}",
        f"epochs = {hp.epochs}",
        f"iters = {hp.iters}",
        f"seed = {hp.seed}",
        f"initializationType = {INITIALIZATION_REPORT_NAMES[hp.initialization]}",
        f"normalizationType = {NORMALIZATION_REPORT_NAMES[hp.normalization]}",
        "",
        f"Command line call: {command_line}",
        "",
        "Statistics for current run: ",
        "param | iter | objective, training accuracy, testing accuracy",
    ]
    for rec in stats:
        # the initial record shares iteration 0 with the first W update
        label = "init" if rec.param == "init" else rec.param
        it = max(rec.iteration, 0)
        lines.append(f"{label:<5} | {it:<4} | {rec.objective}, {rec.train_accuracy}, {rec.test_accuracy}")
    lines.append("")
    return "\n".join(lines) + "\n"


class RunRecorder:
    def __init__(self, fs):
        self.fs = fs

    def store(self, outfile, hp: HyperParams, command_line: str, stats) -> Path:
        outfile = Path(outfile)
        self.fs.write_text(outfile, format_report(hp, command_line, stats))
        return outfile
