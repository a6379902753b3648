import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from span_ner import api
from span_ner.config import (
    C_RANGE,
    CACHE_SIZE_RANGE,
    DEFAULT_MODEL_PATH,
    DEFAULT_SEGMENTER_PATH,
    MODELS_ENV_VAR,
    THREADS_RANGE,
    WORD_FEATURES_FILE,
    ChunkerConfig,
    ClassifierConfig,
    check_range,
)
from span_ner.conll import parse_conll_file, write_conll
from span_ner.embedders import load_embedder_from_dir
from span_ner.errors import ConfigError, FormatError
from span_ner.metrics import format_label_evaluation
from span_ner.serialization import load_extractor
from span_ner.training import test_chunker_stage, test_id_stage, train_chunker_stage, train_id_stage

logger = logging.getLogger(__name__)

TRAINING_OPTIONS = ("C", "eps", "threads", "cache_size")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="span-ner",
        description="Train, test and run the two-stage CoNLL named entity recognizer.",
    )
    commands = parser.add_mutually_exclusive_group(required=True)
    commands.add_argument("--train-chunker", action="store_true", help="Train NER chunker on CoNLL data.")
    commands.add_argument("--test-chunker", action="store_true", help="Test NER chunker on CoNLL data.")
    commands.add_argument("--train-id", action="store_true", help="Train NER ID/classification on CoNLL data.")
    commands.add_argument("--test-id", action="store_true", help="Test NER ID/classification on CoNLL data.")
    commands.add_argument(
        "--tag-file",
        metavar="MODEL",
        help="Read in a text file and tag it with the NER model in file MODEL.",
    )
    commands.add_argument(
        "--tag-conll-file",
        metavar="MODEL",
        help="Read in a CoNLL file and output a copy tagged with the NER model in file MODEL.",
    )
    parser.add_argument("input", help="CoNLL corpus (or plain text for --tag-file).")
    parser.add_argument("-C", dest="C", type=float, help="SVM C parameter (chunker default 15, classifier default 450).")
    parser.add_argument("--eps", type=float, help="SVM stopping epsilon (chunker default 0.01, classifier default 0.001).")
    parser.add_argument("--threads", type=int, help="Threads to use when training (default: 4).")
    parser.add_argument("--cache-size", type=int, help="Max cutting plane cache size for the chunker (default: 5).")
    parser.add_argument(
        "--segmenter",
        default=DEFAULT_SEGMENTER_PATH,
        help=f"Chunker model file (default: {DEFAULT_SEGMENTER_PATH}).",
    )
    parser.add_argument(
        "--model",
        default=DEFAULT_MODEL_PATH,
        help=f"Composed NER model file written by --train-id (default: {DEFAULT_MODEL_PATH}).",
    )
    parser.add_argument("-o", "--output", help="Write --tag-conll-file output here instead of stdout.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug output.")
    return parser


def _check_options(parser: argparse.ArgumentParser, args: argparse.Namespace) -> None:
    training = args.train_chunker or args.train_id
    given = [name for name in TRAINING_OPTIONS if getattr(args, name) is not None]
    if given and not training:
        parser.error(f"options {', '.join(given)} only apply to --train-chunker and --train-id")
    if args.cache_size is not None and not args.train_chunker:
        parser.error("--cache-size only applies to --train-chunker")


def _overrides(args: argparse.Namespace) -> dict:
    values = {}
    if args.C is not None:
        check_range("C", args.C, C_RANGE)
        values["C"] = args.C
    if args.eps is not None:
        if not args.eps > 0:
            raise ConfigError(f"eps must be positive, got {args.eps}")
        values["eps"] = args.eps
    if args.threads is not None:
        check_range("threads", args.threads, THREADS_RANGE)
        values["num_threads"] = args.threads
    if args.cache_size is not None:
        check_range("cache-size", args.cache_size, CACHE_SIZE_RANGE)
        values["cache_size"] = args.cache_size
    return values


def _models_dir() -> str:
    models_dir = os.environ.get(MODELS_ENV_VAR)
    if not models_dir:
        raise ConfigError(
            f"{MODELS_ENV_VAR} environment variable not set. It should contain the path "
            f"to the directory holding {WORD_FEATURES_FILE}."
        )
    return models_dir


def _print_config(config) -> None:
    for name, value in vars(config).items():
        print(f"{name + ':':<16}{value}")


def train_chunker_command(args: argparse.Namespace) -> int:
    config = ChunkerConfig(**_overrides(args)).validate()
    embedder = load_embedder_from_dir(_models_dir())
    _print_config(config)
    score = train_chunker_stage(args.input, embedder, args.segmenter, config)
    print(f"precision, recall, f1-score: {score.summary()}")
    return 0


def test_chunker_command(args: argparse.Namespace) -> int:
    score = test_chunker_stage(args.input, args.segmenter)
    print(f"precision, recall, f1-score: {score.summary()}")
    return 0


def train_id_command(args: argparse.Namespace) -> int:
    config = ClassifierConfig(**_overrides(args)).validate()
    _print_config(config)
    report = train_id_stage(args.input, args.segmenter, args.model, config)
    print("test on train:")
    print(report.matrix)
    print(f"overall accuracy: {report.accuracy}")
    return 0


def test_id_command(args: argparse.Namespace) -> int:
    evaluation, tag_names = test_id_stage(args.input, args.model)
    print("results:")
    for line in format_label_evaluation(evaluation, tag_names):
        print(line)
    return 0


def tag_file_command(args: argparse.Namespace) -> int:
    ner = api.load_named_entity_extractor(args.tag_file)
    if ner is None:
        print("couldn't load model file")
        return 1
    with ner:
        text = Path(args.input).read_text(encoding="utf-8")
        num_tags = api.get_num_possible_ner_tags(ner)
        print(f"NER tags: {num_tags}")
        for i in range(num_tags):
            print(f"   {api.get_named_entity_tagstr(ner, i)}")

        dets = api.extract_entities(ner, text)
        if dets is None:
            print("entity extraction failed")
            return 1
        with dets:
            num_dets = api.get_num_detections(dets)
            print(f"num_dets: {num_dets}")
            for i in range(num_dets):
                begin = api.get_detection_position(dets, i)
                length = api.get_detection_length(dets, i)
                print(
                    f"   {api.get_detection_tagstr(dets, i)}({api.get_detection_tag(dets, i)}),  "
                    f"{text[begin:begin + length]}"
                )
    return 0


def tag_conll_file_command(args: argparse.Namespace) -> int:
    extractor = load_extractor(args.tag_conll_file)
    sentences = parse_conll_file(args.input)
    tags = [extractor.tag(sentence.tokens) for sentence in sentences]
    if args.output:
        with Path(args.output).open("w", encoding="utf-8") as f:
            write_conll(sentences, tags, f)
    else:
        write_conll(sentences, tags, sys.stdout)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _check_options(parser, args)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.tag_file:
        command = tag_file_command
    elif args.tag_conll_file:
        command = tag_conll_file_command
    elif args.train_chunker:
        command = train_chunker_command
    elif args.test_chunker:
        command = test_chunker_command
    elif args.train_id:
        command = train_id_command
    else:
        command = test_id_command

    try:
        return command(args)
    except (ConfigError, FormatError, FileNotFoundError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
