#!/usr/bin/env python3
import argparse
import logging
import os
import sys
from typing import List, Optional

from generator import BindingGenerator
from header_walker import HeaderWalker
from out_types import EnumDecl, FunctionDecl, StructDecl, TypedefDecl, UnionDecl
from type_nodes import TypeResolutionError
from type_refs import class_name


def default_module_name(header_path: str) -> str:
    stem = os.path.splitext(os.path.basename(header_path))[0]
    return class_name(stem.replace("-", "_")) or "Bindings"


def generate(header_path: str, module_name: str, libraries: Optional[List[str]] = None,
             clang_args: Optional[List[str]] = None) -> BindingGenerator:
    """Walks a header and returns the generator holding its declarations."""
    generator = BindingGenerator(module_name, libraries)
    HeaderWalker(generator).walk(header_path, clang_args)
    return generator


def _summary(generator: BindingGenerator) -> str:
    def count(*kinds):
        return sum(1 for n in generator.nodes if type(n) in kinds)

    return (f"Structs: {count(StructDecl)}, Unions: {count(UnionDecl)}, Enums: {count(EnumDecl)}\n"
            f"Functions: {count(FunctionDecl)}, Typedefs: {count(TypedefDecl)}, "
            f"Inline records: {sum(len(v) for v in generator.inline.values())}")


# --- Main Execution ---
def main(argv: Optional[List[str]] = None):
    """Command-line interface for the binding generator."""
    parser = argparse.ArgumentParser(
        description="Generate Ruby FFI bindings from a C header file."
    )
    parser.add_argument("header", help="Path to the C header file to parse.")
    parser.add_argument(
        "-m", "--module", dest="module_name",
        help="Name of the generated Ruby module (default: derived from the header name)."
    )
    parser.add_argument(
        "-o", "--output",
        help="Path to the output Ruby file (default: standard output)."
    )
    parser.add_argument(
        "-l", "--lib", dest="libraries", action="append", default=[],
        help="Library to load with ffi_lib (may be repeated)."
    )
    parser.add_argument(
        "-I", dest="include_dirs", action="append", default=[],
        help="Add a directory to the Clang include path (e.g., -I/usr/include)."
    )
    parser.add_argument(
        "--clang-arg", dest="clang_args", action="append", default=[],
        help="Extra argument passed to Clang (may be repeated)."
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )

    clang_args = [f"-I{d}" for d in args.include_dirs] + args.clang_args
    module_name = args.module_name or default_module_name(args.header)

    try:
        generator = generate(args.header, module_name, args.libraries, clang_args)
        output_code = generator.render()
    except (FileNotFoundError, RuntimeError, TypeResolutionError) as e:
        print(f"An error occurred: {e}", file=sys.stderr)
        return 1

    print("\n--- Parsing Summary ---", file=sys.stderr)
    print(_summary(generator), file=sys.stderr)
    print("-----------------------", file=sys.stderr)

    if args.output:
        with open(args.output, "w") as f:
            f.write(output_code)
        print(f"\nSuccessfully generated Ruby bindings at: {args.output}", file=sys.stderr)
    else:
        sys.stdout.write(output_code)
    return 0


if __name__ == "__main__":
    sys.exit(main())
