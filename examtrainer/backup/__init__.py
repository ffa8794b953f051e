from .merge import IdAllocator, ImportPreview, MergePolicy, MergeReport, merge_questions, preview
from .payload import BackupPayload, apply_backup, collect_backup
from .validate import Decoded, DecodeResult, Invalid, ValidationIssue, decode_backup, decode_progress, decode_questions, issue_summary
from .archive import export_questions_zip, export_zip, export_zip_bytes, read_zip
from .json_io import dump_backup, dump_progress, dump_questions, dump_results, dump_stats, load_backup, load_progress, load_questions

__all__ = [
    "IdAllocator",
    "ImportPreview",
    "MergePolicy",
    "MergeReport",
    "merge_questions",
    "preview",
    "BackupPayload",
    "apply_backup",
    "collect_backup",
    "Decoded",
    "DecodeResult",
    "Invalid",
    "ValidationIssue",
    "decode_backup",
    "decode_progress",
    "decode_questions",
    "issue_summary",
    "export_questions_zip",
    "export_zip",
    "export_zip_bytes",
    "read_zip",
    "dump_backup",
    "dump_progress",
    "dump_questions",
    "dump_results",
    "dump_stats",
    "load_backup",
    "load_progress",
    "load_questions",
]
