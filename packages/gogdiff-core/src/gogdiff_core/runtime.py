"""Operation interpreter embedded into every gogdiff delta artifact.

The emitter copies this module verbatim into the generated program, after
the header constants and before the operation records. It therefore has to
run on a bare interpreter: standard library only, no package imports and
no ``from __future__`` line.

All paths handed to the operations are relative to the working directory
captured once at start-up; nothing here changes the process working
directory.
"""

import hashlib
import json
import logging
import os
import shutil
import subprocess
import sys
import tarfile
from dataclasses import dataclass, field

logger = logging.getLogger("gogdiff.runtime")

ENV_EXTRACT_ONLY = "GOGDIFF_EXTRACTONLY"
ENV_NO_LINKS = "GOGDIFF_NOLINKS"
ENV_SKIP_DIGESTS = "GOGDIFF_SKIPDIGESTS"
ENV_VERBOSE = "GOGDIFF_VERBOSE"
ENV_XDELTA3 = "GOGDIFF_XDELTA3"


class ArtifactError(Exception):
    """Base class for failures while executing an artifact."""


class InvariantViolation(ArtifactError):
    """A planned filesystem assumption did not hold at execution time."""


class VerificationError(ArtifactError):
    """Final file digests do not match the recorded manifest."""


@dataclass(frozen=True)
class RuntimeOptions:
    """Environment toggles read when the artifact starts."""

    extract_only: bool = False
    dedup: bool = True
    verify: bool = True
    verbose: bool = False
    xdelta3: str = "xdelta3"

    @classmethod
    def from_environ(cls, environ) -> "RuntimeOptions":
        return cls(
            extract_only=bool(environ.get(ENV_EXTRACT_ONLY)),
            dedup=not environ.get(ENV_NO_LINKS),
            verify=not environ.get(ENV_SKIP_DIGESTS),
            verbose=bool(environ.get(ENV_VERBOSE)),
            xdelta3=environ.get(ENV_XDELTA3) or "xdelta3",
        )


@dataclass
class RuntimeContext:
    """Everything an operation needs, passed explicitly."""

    workdir: str
    artifact: str
    payload_offset: int
    algorithm: str = "sha256"
    codec: str = "xdelta3"
    staging: tuple = ()
    manifest: str = ""
    options: RuntimeOptions = field(default_factory=RuntimeOptions)

    def resolve(self, relpath: str) -> str:
        return os.path.normpath(os.path.join(self.workdir, relpath))


# ----------------------------------------------------------------------
# Manifest encoding
# ----------------------------------------------------------------------

_ALWAYS_ESCAPED = frozenset('\\"\x7f') | frozenset(chr(c) for c in range(0x20))
_SIMPLE_ESCAPES = {"\\": "\\\\", "\n": "\\n", "\r": "\\r", "\t": "\\t"}
_SIMPLE_UNESCAPES = {"\\": "\\", "n": "\n", "r": "\r", "t": "\t"}


def _is_undecodable(ch: str) -> bool:
    # os.fsdecode maps undecodable bytes 0x80-0xff to U+DC80-U+DCFF
    return "\udc80" <= ch <= "\udcff"


def needs_escape(path: str) -> bool:
    return any(ch in _ALWAYS_ESCAPED or _is_undecodable(ch) for ch in path)


def escape_path(path: str) -> str:
    out = []
    for ch in path:
        if ch in _SIMPLE_ESCAPES:
            out.append(_SIMPLE_ESCAPES[ch])
        elif _is_undecodable(ch):
            out.append("\\x%02x" % (ord(ch) - 0xDC00))
        elif ch in _ALWAYS_ESCAPED:
            out.append("\\x%02x" % ord(ch))
        else:
            out.append(ch)
    return "".join(out)


def unescape_path(text: str) -> str:
    out = []
    i = 0
    while i < len(text):
        ch = text[i]
        if ch != "\\":
            out.append(ch)
            i += 1
            continue
        code = text[i + 1:i + 2]
        if code in _SIMPLE_UNESCAPES:
            out.append(_SIMPLE_UNESCAPES[code])
            i += 2
        elif code == "x":
            try:
                value = int(text[i + 2:i + 4], 16)
            except ValueError:
                raise ArtifactError("bad \\x escape in manifest path %r" % text) from None
            out.append(chr(0xDC00 + value) if value >= 0x80 else chr(value))
            i += 4
        else:
            raise ArtifactError("bad escape in manifest path %r" % text)
    return "".join(out)


def format_manifest_line(digest: str, path: str) -> str:
    """One ``<digest>  <path>`` line; a leading backslash marks an escaped path."""
    if needs_escape(path):
        return "\\%s  %s" % (digest, escape_path(path))
    return "%s  %s" % (digest, path)


def parse_manifest_line(line: str) -> tuple:
    escaped = line.startswith("\\")
    if escaped:
        line = line[1:]
    digest, sep, path = line.partition("  ")
    if not sep or not digest or not path:
        raise ArtifactError("malformed manifest line %r" % line)
    if escaped:
        path = unescape_path(path)
    return digest, path


def parse_manifest(text: str) -> list:
    # split on "\n" only: str.splitlines() would also break on NEL and U+2028
    return [parse_manifest_line(line) for line in text.split("\n") if line]


def parse_operations(text: str) -> list:
    records = []
    for line in text.split("\n"):
        if not line:
            continue
        record = json.loads(line)
        if not isinstance(record, list) or not record:
            raise ArtifactError("malformed operation record %r" % line)
        records.append(record)
    return records


# ----------------------------------------------------------------------
# Operations
# ----------------------------------------------------------------------


def _ensure_parent(path: str) -> None:
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)


def _file_digest(path: str, algorithm: str) -> str:
    with open(path, "rb") as f:
        return hashlib.file_digest(f, algorithm).hexdigest()


def op_move(ctx: RuntimeContext, src: str, dst: str, overwrite: bool = False) -> None:
    src_abs, dst_abs = ctx.resolve(src), ctx.resolve(dst)
    if not os.path.lexists(src_abs):
        raise InvariantViolation("move source %r does not exist" % src)
    if not overwrite and os.path.lexists(dst_abs):
        raise InvariantViolation("move destination %r already exists" % dst)
    _ensure_parent(dst_abs)
    os.rename(src_abs, dst_abs)


def op_link_or_copy(ctx: RuntimeContext, src: str, dst: str) -> None:
    src_abs, dst_abs = ctx.resolve(src), ctx.resolve(dst)
    if os.path.lexists(dst_abs):
        raise InvariantViolation("link destination %r already exists" % dst)
    _ensure_parent(dst_abs)
    if ctx.options.dedup:
        try:
            os.link(src_abs, dst_abs)
            return
        except OSError as exc:
            logger.debug("hard link to %s failed (%s), copying instead", dst, exc)
    shutil.copy2(src_abs, dst_abs)


def op_remove(ctx: RuntimeContext, path: str) -> None:
    abs_path = ctx.resolve(path)
    if not os.path.lexists(abs_path):
        raise InvariantViolation("cannot remove %r: it does not exist" % path)
    os.unlink(abs_path)


def op_remove_empty_dir(ctx: RuntimeContext, path: str) -> None:
    try:
        os.rmdir(ctx.resolve(path))
    except OSError as exc:
        raise InvariantViolation("cannot remove directory %r: %s" % (path, exc.strerror)) from exc


def op_extract(ctx: RuntimeContext, dest: str) -> None:
    dest_abs = ctx.resolve(dest)
    os.makedirs(dest_abs, exist_ok=True)
    with open(ctx.artifact, "rb") as f:
        f.seek(ctx.payload_offset)
        with tarfile.open(fileobj=f, mode="r|*") as tar:
            # The payload is produced by the emitter and may carry
            # symlinks that point outside the tree.
            tar.extractall(dest_abs, filter="fully_trusted")


def _xdelta3_decode(options: RuntimeOptions, base: str, patch: str, output: str) -> list:
    return [options.xdelta3, "-d", "-f", "-s", base, patch, output]


PATCH_DECODERS = {
    "xdelta3": _xdelta3_decode,
}


def op_apply_patch(ctx: RuntimeContext, base: str, patch: str, output: str) -> None:
    base_abs, patch_abs, out_abs = ctx.resolve(base), ctx.resolve(patch), ctx.resolve(output)
    try:
        build_command = PATCH_DECODERS[ctx.codec]
    except KeyError:
        raise ArtifactError("unknown patch codec %r" % ctx.codec) from None
    if os.path.lexists(out_abs):
        raise InvariantViolation("patch output %r already exists" % output)
    _ensure_parent(out_abs)
    argv = build_command(ctx.options, base_abs, patch_abs, out_abs)
    try:
        subprocess.run(argv, check=True, capture_output=True)
    except FileNotFoundError as exc:
        raise ArtifactError("patch decoder %r not found" % argv[0]) from exc
    except subprocess.CalledProcessError as exc:
        stderr = exc.stderr.decode(errors="replace").strip()
        raise ArtifactError("patch decoder failed on %r: %s" % (output, stderr)) from exc
    # Both inputs are single-use: the blob came from the payload and the
    # base is a source-only file.
    os.unlink(patch_abs)
    os.unlink(base_abs)


def op_verify(ctx: RuntimeContext) -> None:
    if not ctx.options.verify:
        logger.info("skipping digest verification")
        return
    failures = []
    entries = parse_manifest(ctx.manifest)
    for digest, path in entries:
        abs_path = ctx.resolve(path)
        if not os.path.isfile(abs_path):
            failures.append("%s: missing" % path)
            continue
        if _file_digest(abs_path, ctx.algorithm) != digest.lower():
            failures.append("%s: digest mismatch" % path)
    if failures:
        for failure in failures[:20]:
            logger.error("%s", failure)
        raise VerificationError("%d of %d files failed verification" % (len(failures), len(entries)))
    logger.info("verified %d files", len(entries))


OPERATIONS = {
    "move": op_move,
    "link": op_link_or_copy,
    "remove": op_remove,
    "rmdir": op_remove_empty_dir,
    "extract": op_extract,
    "patch": op_apply_patch,
    "verify": op_verify,
}


def execute(ctx: RuntimeContext, records: list) -> None:
    """Run *records* strictly in order; the first failure aborts the run."""
    for name in ctx.staging:
        path = ctx.resolve(name)
        if os.path.lexists(path):
            raise InvariantViolation("staging directory %r already exists" % name)
        os.mkdir(path)

    for record in records:
        tag, args = record[0], record[1:]
        try:
            handler = OPERATIONS[tag]
        except KeyError:
            raise ArtifactError("unknown operation %r" % tag) from None
        logger.info("%s %s", tag, " ".join(str(a) for a in args))
        handler(ctx, *args)


def main(argv: list, header: dict, operations_text: str, manifest_text: str, environ=None) -> int:
    options = RuntimeOptions.from_environ(os.environ if environ is None else environ)
    logging.basicConfig(
        stream=sys.stderr,
        level=logging.INFO if options.verbose else logging.WARNING,
        format="%(message)s",
    )
    if len(argv) < 2:
        logger.error("the artifact path is missing; run the artifact directly")
        return 1

    ctx = RuntimeContext(
        workdir=os.getcwd(),
        artifact=os.path.abspath(argv[1]),
        payload_offset=header["payload_offset"],
        algorithm=header["algorithm"],
        codec=header["codec"],
        staging=tuple(header["staging"]),
        manifest=manifest_text,
        options=options,
    )
    try:
        if options.extract_only:
            op_extract(ctx, ".")
            return 0
        execute(ctx, parse_operations(operations_text))
    except InvariantViolation as exc:
        logger.error("planning invariant violated, %s is left partially transformed: %s", ctx.workdir, exc)
        return 1
    except (ArtifactError, OSError, tarfile.TarError) as exc:
        logger.error("delta failed, %s is left partially transformed: %s", ctx.workdir, exc)
        return 1
    except Exception as exc:
        logger.error(
            "delta failed unexpectedly, %s is left partially transformed: %r",
            ctx.workdir,
            exc,
            exc_info=options.verbose,
        )
        return 1
    return 0
