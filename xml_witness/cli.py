#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Genera el JSON de inputs del circuito desde un XML firmado.

Uso:
  xml-witness /path/al.xml --nullifier-seed 12345678 [-o input.json]
  xml-witness /path/al.xml --nullifier-seed 1 --reveal-start 'name="' --reveal-end '"'
  xml-witness /path/al.xml --nullifier-seed 1 --check

Exit codes:
  0 = OK
  2 = FAIL
"""

from __future__ import annotations

import argparse
import hashlib
import os
import sys
from pathlib import Path
from typing import List, Optional

from .config import get_witness_config
from .crypto_engine import setup_crypto_engine
from .exceptions import WitnessError
from .input_generator import InputGenerationParams, generate_input
from .pipeline_logger import configure_logging
from .xml_signature import extract_signature_parts


def _build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="xml-witness",
        description="Convierte un XML-DSig firmado en inputs para el circuito",
    )
    ap.add_argument("xml_path", help="Ruta al XML firmado")
    ap.add_argument("--nullifier-seed", required=True, help="Seed del nullifier (entero decimal o 0x...)")
    ap.add_argument("--reveal-start", default=None, help="Marcador de inicio de la ventana de reveal")
    ap.add_argument("--reveal-end", default=None, help="Marcador de fin de la ventana de reveal")
    ap.add_argument("--max-input-length", type=int, default=None, help="Capacidad del circuito en bytes (múltiplo de 64)")
    ap.add_argument("--bits-per-chunk", type=int, default=None, help="Bits por limb RSA")
    ap.add_argument("--num-chunks", type=int, default=None, help="Cantidad de limbs RSA")
    ap.add_argument("-o", "--output", default=None, help="Archivo JSON de salida (default: stdout)")
    ap.add_argument("--check", action="store_true", help="Reanuda precomputedSHA y lo compara con SHA256 del payload firmado")
    ap.add_argument("--debug", action="store_true", help="Modo debug (log de cada etapa)")
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    try:
        config = get_witness_config()
    except ValueError as e:
        print(f"❌ Configuración inválida: {e}", file=sys.stderr)
        return 2

    configure_logging("DEBUG" if args.debug else config.log_level, config.log_dir)

    xml_path = os.path.abspath(os.path.expanduser(args.xml_path))
    if not os.path.isfile(xml_path):
        print(f"❌ No existe el archivo: {xml_path}", file=sys.stderr)
        return 2

    try:
        nullifier_seed = int(args.nullifier_seed, 0)
    except ValueError:
        print(f"❌ --nullifier-seed inválido: {args.nullifier_seed!r}", file=sys.stderr)
        return 2

    params = InputGenerationParams.from_config(
        config,
        nullifier_seed=nullifier_seed,
        reveal_start=args.reveal_start,
        reveal_end=args.reveal_end,
        max_input_length=args.max_input_length,
        rsa_key_bits_per_chunk=args.bits_per_chunk,
        rsa_key_num_chunks=args.num_chunks,
    )

    engine = setup_crypto_engine()
    xml_bytes = Path(xml_path).read_bytes()

    try:
        inputs = generate_input(xml_bytes, params, engine=engine)
        if args.check:
            signed_data = extract_signature_parts(xml_bytes, engine).signed_data
            resumed = inputs.resume_digest()
            expected = hashlib.sha256(signed_data).digest()
            if resumed != expected:
                print(
                    f"❌ precomputedSHA no reanuda al hash del payload: {resumed.hex()} != {expected.hex()}",
                    file=sys.stderr,
                )
                return 2
            print(f"✅ Check OK: SHA256(payload) = {expected.hex()}", file=sys.stderr)
    except WitnessError as e:
        print(f"❌ {type(e).__name__}: {e}", file=sys.stderr)
        return 2

    payload = inputs.to_json(indent=2)
    if args.output:
        Path(args.output).write_text(payload + "\n", encoding="utf-8")
        print(f"✅ Inputs escritos en {args.output}", file=sys.stderr)
    else:
        print(payload)
    return 0


if __name__ == "__main__":
    sys.exit(main())
