from __future__ import annotations

"""CLI for examtrainer using SessionManager."""

import argparse
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from storage.schema import ExamResult, QuestionOption
from storage.store import JsonFileStore, StoreError, init_store

from .. import __version__
from ..backup.merge import MergePolicy
from ..backup.validate import issue_summary
from ..config.config import load_config, validate_config
from ..errors import ExamTrainerError, InvalidInput, SessionRejected
from ..policy.selection import MODES, ExamMode
from ..bank.editor import OPTION_LABELS, QuestionDraft
from ..bank.loader import DefaultQuestionSource
from ..stats.stats import format_summary
from ..util.randomness import seed_if_needed
from .exam_session import QuestionView, SessionState
from .presets import EXAM_PRESETS, resolve_preset
from .session_manager import SessionManager

logger = logging.getLogger(__name__)

UI = Dict[str, Callable[..., Any]]

HELP = (
    "Answer with a label (A or A,C) or text. n/p next/prev, g N jump, * mark important, "
    "x delete question, q end exam. Prefix an answer with = to send it as typed (=n)."
)


def _build_ui() -> UI:
    def ask(prompt: str) -> str:
        return input(prompt)

    def inform(msg: str) -> None:
        print(msg)

    def confirm(prompt: str) -> bool:
        return input(f"{prompt} [y/N] ").strip().lower() in ("y", "yes")

    return {"ask": ask, "inform": inform, "confirm": confirm}


def _make_manager(cfg: Dict[str, Any]) -> SessionManager:
    data_dir = init_store(Path(cfg["storage"]["data_dir"]))
    q = cfg["questions"]
    source = DefaultQuestionSource(q.get("default_source"), q.get("fetch_timeout_s", 10.0))
    return SessionManager(JsonFileStore(data_dir), source, compression_level=cfg["backup"]["compression_level"])


def _fmt_duration(ms: int) -> str:
    secs = ms // 1000
    return f"{secs // 60}m {secs % 60:02d}s"


def format_result(result: ExamResult) -> str:
    lines = [
        f"Score: {result.score}% ({result.correct_answers}/{result.total_questions} correct) in {_fmt_duration(result.time_spent)}",
    ]
    for i, a in enumerate(result.answers, 1):
        mark = "ok " if a.is_correct else "xx "
        given = ", ".join(a.selected_answer) or "(no answer)"
        lines.append(f"  {mark}{i}. {a.question} | yours: {given} | correct: {', '.join(a.correct_answer)}")
    return "\n".join(lines)


def render_question(view: QuestionView, important: bool = False) -> str:
    q = view.question
    star = " *" if important else ""
    kind = {"single": "single choice", "multiple": "multiple choice"}.get(q.type, "fill in the blank")
    lines = [f"\n[{view.index + 1}/{view.total}] ({kind}){star} {q.question}"]
    for o in q.options:
        picked = ">" if o.label in view.selected else " "
        lines.append(f" {picked} {o.label}. {o.text}")
    if view.scored:
        lines.append(f"  Answered: {', '.join(view.selected)} ({'correct' if view.is_correct else 'wrong'})")
    elif view.selected:
        lines.append(f"  Selected: {', '.join(view.selected)}")
    return "\n".join(lines)


def _answer(sm: SessionManager, raw: str, ui: UI, show_explanations: bool) -> None:
    session = sm.session
    assert session is not None
    q = session.current
    if q is None:
        return
    if session.is_scored(q.id):
        ui["inform"]("Already answered. Use n/p to move on.")
        return
    session.clear_selection()
    if q.type == "fill_in_the_blanks":
        session.select_answer(raw)
    else:
        labels = [t.strip().upper() for t in raw.replace(" ", ",").split(",") if t.strip()]
        known = {o.label for o in q.options}
        unknown = [lbl for lbl in labels if lbl not in known]
        if unknown:
            ui["inform"](f"Unknown option(s): {', '.join(unknown)}")
            return
        if q.type == "single" and len(labels) > 1:
            ui["inform"]("Pick exactly one option.")
            return
        for lbl in labels:
            session.select_answer(lbl)
    outcome = session.submit()
    ui["inform"]("Correct!" if outcome.is_correct else f"Wrong. Correct answer: {', '.join(outcome.correct_answer)}")
    if show_explanations:
        ui["inform"](f"Explanation: {outcome.explanation}")


def run_exam(sm: SessionManager, ui: UI, *, show_explanations: bool = True) -> Optional[ExamResult]:
    """Interactive loop over the manager's in-progress exam."""
    session = sm.session
    assert session is not None and sm.bank is not None
    ui["inform"](HELP)
    while session.state is SessionState.IN_PROGRESS:
        view = session.current_view()
        if view is None:
            break
        entry = sm.stats.get(sm.bank.subject_id, view.question.id)
        ui["inform"](render_question(view, bool(entry and entry.is_important)))
        raw = ui["ask"]("> ").strip()
        if not raw:
            continue
        cmd = raw.lower()
        try:
            if raw.startswith("="):
                _answer(sm, raw[1:], ui, show_explanations)
            elif cmd == "n":
                result = session.advance()
                if result is not None:
                    return result
            elif cmd == "p":
                session.retreat()
            elif cmd.startswith("g ") and cmd[2:].strip().isdigit():
                session.jump_to(int(cmd[2:].strip()) - 1)
            elif cmd == "*":
                entry = sm.toggle_important(view.question.id)
                ui["inform"]("Marked important." if entry.is_important else "Unmarked.")
            elif cmd == "x":
                if ui["confirm"]("Permanently delete this question and its stats?"):
                    if session.remove_current_question():
                        ui["inform"]("No questions left; exam closed without a result.")
                        return None
            elif cmd == "q":
                if ui["confirm"]("End the exam now? Answered questions will be scored."):
                    return session.end_early()
            else:
                _answer(sm, raw, ui, show_explanations)
        except SessionRejected as e:
            ui["inform"](e.message)
    return session.result


def _read_text(path: str) -> str:
    return Path(path).read_text(encoding="utf-8")


def _report_invalid(ui: UI, what: str, decoded: Any) -> int:
    ui["inform"](f"{what} rejected; nothing was changed:")
    ui["inform"](issue_summary(decoded.issues))
    return 1


def _cmd_subjects(sm: SessionManager, args: argparse.Namespace, ui: UI) -> int:
    for s in sm.subjects():
        ui["inform"](f"{s.id}: {s.icon} {s.name} - {s.description}")
    return 0


def _open_subject(sm: SessionManager, subject_id: str, ui: UI) -> None:
    loaded = sm.select_subject(subject_id)
    if loaded.notice:
        ui["inform"](f"NOTE: {loaded.notice}")


def _cmd_run(sm: SessionManager, args: argparse.Namespace, ui: UI, cfg: Dict[str, Any]) -> int:
    _open_subject(sm, args.subject, ui)
    params = resolve_preset(args.preset, cfg["exam"], {"mode": args.mode, "count": args.count})
    mode = ExamMode(params["mode"])
    count = None if params["count"] == "all" else int(params["count"])
    counts = sm.mode_counts()
    ui["inform"](
        f"{sm.subject.name if sm.subject else args.subject}: {len(sm.bank or [])} questions | "
        + ", ".join(f"{MODES[m].label}: {n}" for m, n in counts.items())
    )
    outcome = sm.start_exam(mode, count)
    if not outcome.started:
        ui["inform"](outcome.message or "Nothing to ask.")
        return 0
    ui["inform"](f"Starting {MODES[mode].label.lower()} exam with {outcome.count} question(s).")
    result = run_exam(sm, ui, show_explanations=cfg["exam"]["show_explanations"])
    if result is not None:
        ui["inform"]("\nExam Summary:")
        ui["inform"](format_result(result))
    return 0


def _cmd_history(sm: SessionManager, args: argparse.Namespace, ui: UI) -> int:
    rows = sm.history(args.subject)
    if not rows:
        ui["inform"]("No exams yet.")
        return 0
    for r in rows[: args.limit]:
        ui["inform"](f"{r.id} {r.subject_id}: {r.score}% ({r.correct_answers}/{r.total_questions}) {_fmt_duration(r.time_spent)}")
    summary = sm.results.summarize(args.subject)
    ui["inform"](f"Exams: {summary['exams']} | best {summary['best']}% | average {summary['average']}% | last {summary['last']}%")
    return 0


def _cmd_stats(sm: SessionManager, args: argparse.Namespace, ui: UI, cfg: Dict[str, Any]) -> int:
    from analytics import (
        AnalyticsConfig,
        accuracy_by_chapter,
        ewma_scores,
        export_ndjson,
        plot_chapter_accuracy,
        plot_score_trend,
        results_frame,
        stats_frame,
        weakest_questions,
        write_parquet,
    )

    _open_subject(sm, args.subject, ui)
    assert sm.bank is not None
    acfg = AnalyticsConfig.from_config(cfg)
    entries = sm.stats.for_subject(args.subject)
    ui["inform"](format_summary(entries, len(sm.bank)))
    df = stats_frame(entries, sm.bank.questions)
    chapters = accuracy_by_chapter(df)
    if not chapters.empty:
        ui["inform"]("\nBy chapter:\n" + chapters.to_string(index=False))
    weak = weakest_questions(df, acfg)
    if not weak.empty:
        ui["inform"]("\nWeakest questions:\n" + weak[["question_id", "chapter", "correct", "incorrect", "acc"]].to_string(index=False))
    if args.ndjson:
        export_ndjson(df, Path(args.ndjson))
        ui["inform"](f"Wrote {args.ndjson}")
    if args.parquet:
        write_parquet(df, Path(args.parquet))
        ui["inform"](f"Wrote {args.parquet}")
    if args.plot:
        out = Path(args.plot)
        out.mkdir(parents=True, exist_ok=True)
        trend = ewma_scores(results_frame(sm.history(args.subject)), acfg.smoothing_span)
        if plot_score_trend(trend, subject_id=args.subject, save_path=out / f"{args.subject}-scores.png"):
            ui["inform"](f"Wrote {out / f'{args.subject}-scores.png'}")
        if plot_chapter_accuracy(chapters, save_path=out / f"{args.subject}-chapters.png"):
            ui["inform"](f"Wrote {out / f'{args.subject}-chapters.png'}")
    return 0


def _cmd_export_zip(sm: SessionManager, args: argparse.Namespace, ui: UI) -> int:
    manifest = sm.export_zip(args.path)
    c = manifest["counts"]
    ui["inform"](
        f"Wrote {args.path}: {c['subjects']} subjects, {c['questions']} questions, "
        f"{c['questionStats']} stat entries, {c['examResults']} results"
    )
    return 0


def _cmd_import_zip(sm: SessionManager, args: argparse.Namespace, ui: UI) -> int:
    if not (args.yes or ui["confirm"]("Importing replaces every category present in the backup. Continue?")):
        ui["inform"]("Cancelled.")
        return 0
    decoded = sm.import_zip(args.path)
    if not decoded.ok:
        return _report_invalid(ui, "Backup", decoded)
    ui["inform"](f"Imported: {decoded.value}")
    return 0


def _cmd_export_questions(sm: SessionManager, args: argparse.Namespace, ui: UI) -> int:
    _open_subject(sm, args.subject, ui)
    Path(args.path).write_text(sm.export_questions(), encoding="utf-8")
    ui["inform"](f"Wrote {len(sm.bank or [])} questions to {args.path}")
    return 0


def _cmd_import_questions(sm: SessionManager, args: argparse.Namespace, ui: UI) -> int:
    _open_subject(sm, args.subject, ui)
    text = _read_text(args.path)
    pv = sm.preview_import(text)
    if not pv.ok:
        return _report_invalid(ui, "Question file", pv)
    p = pv.value
    ui["inform"](f"{p.total} question(s): {p.new_count} new, {p.update_count} with existing ids.")
    policy = MergePolicy(args.policy)
    if policy is MergePolicy.RESET and not (
        args.yes or ui["confirm"]("Replace the whole question bank with this file?")
    ):
        ui["inform"]("Cancelled.")
        return 0
    decoded = sm.import_questions(text, policy)
    if not decoded.ok:
        return _report_invalid(ui, "Question file", decoded)
    r = decoded.value
    ui["inform"](f"Bank now has {len(r.questions)} questions ({r.added} added, {r.updated} updated, {r.regenerated} re-numbered).")
    return 0


def _cmd_export_progress(sm: SessionManager, args: argparse.Namespace, ui: UI) -> int:
    Path(args.path).write_text(sm.export_progress(), encoding="utf-8")
    ui["inform"](f"Wrote {args.path}")
    return 0


def _cmd_import_progress(sm: SessionManager, args: argparse.Namespace, ui: UI) -> int:
    text = _read_text(args.path)
    if not (args.yes or ui["confirm"]("Replace stats and exam history with this file?")):
        ui["inform"]("Cancelled.")
        return 0
    decoded = sm.import_progress(text)
    if not decoded.ok:
        return _report_invalid(ui, "Progress file", decoded)
    ui["inform"](f"Imported: {decoded.value}")
    return 0


def _cmd_reset_questions(sm: SessionManager, args: argparse.Namespace, ui: UI) -> int:
    _open_subject(sm, args.subject, ui)
    if not (args.yes or ui["confirm"]("Discard custom questions and all stats for this subject?")):
        ui["inform"]("Cancelled.")
        return 0
    loaded = sm.reset_questions()
    if loaded.notice:
        ui["inform"](f"NOTE: {loaded.notice}")
    ui["inform"](f"Restored {len(loaded.questions)} default questions.")
    return 0


def _cmd_clear_data(sm: SessionManager, args: argparse.Namespace, ui: UI) -> int:
    if not (args.yes or ui["confirm"]("Erase all stats and exam history? This cannot be undone.")):
        ui["inform"]("Cancelled.")
        return 0
    sm.clear_all_data()
    ui["inform"]("All stats and exam results cleared.")
    return 0


def _cmd_export_backup(sm: SessionManager, args: argparse.Namespace, ui: UI) -> int:
    Path(args.path).write_text(sm.export_backup(), encoding="utf-8")
    ui["inform"](f"Wrote {args.path}")
    return 0


def _cmd_import_backup(sm: SessionManager, args: argparse.Namespace, ui: UI) -> int:
    text = _read_text(args.path)
    if not (args.yes or ui["confirm"]("Importing replaces every category present in the backup. Continue?")):
        ui["inform"]("Cancelled.")
        return 0
    decoded = sm.import_backup(text)
    if not decoded.ok:
        return _report_invalid(ui, "Backup", decoded)
    ui["inform"](f"Imported: {decoded.value}")
    return 0


def _cmd_export_questions_zip(sm: SessionManager, args: argparse.Namespace, ui: UI) -> int:
    manifest = sm.export_questions_zip(args.path)
    ui["inform"](f"Wrote {args.path}: {manifest['totalQuestions']} questions")
    return 0


def _cmd_export_stats(sm: SessionManager, args: argparse.Namespace, ui: UI) -> int:
    Path(args.path).write_text(sm.export_stats(), encoding="utf-8")
    ui["inform"](f"Wrote {args.path}")
    return 0


def _cmd_export_results(sm: SessionManager, args: argparse.Namespace, ui: UI) -> int:
    Path(args.path).write_text(sm.export_results(), encoding="utf-8")
    ui["inform"](f"Wrote {args.path}")
    return 0


def _cmd_subject(sm: SessionManager, args: argparse.Namespace, ui: UI) -> int:
    if args.action == "add":
        s = sm.add_subject(args.name, args.description, args.icon or "📚")
        ui["inform"](f"Added subject {s.id}.")
    elif args.action == "edit":
        current = sm.catalog.get(args.id)
        if current is None:
            raise SessionRejected(f"Unknown subject '{args.id}'.")
        s = sm.update_subject(
            args.id,
            args.name if args.name is not None else current.name,
            args.description if args.description is not None else current.description,
            args.icon if args.icon is not None else current.icon,
        )
        ui["inform"](f"Updated subject {s.id}.")
    else:
        if not (args.yes or ui["confirm"](f"Remove subject '{args.id}' from the list? Its questions and stats stay stored.")):
            ui["inform"]("Cancelled.")
            return 0
        if not sm.remove_subject(args.id):
            raise SessionRejected(f"Unknown subject '{args.id}'.")
        ui["inform"](f"Removed subject {args.id}.")
    return 0


def _draft_options(texts: List[str]) -> List[QuestionOption]:
    if len(texts) > len(OPTION_LABELS):
        raise InvalidInput(f"At most {len(OPTION_LABELS)} options are allowed.")
    return [QuestionOption(label=lbl, text=t) for lbl, t in zip(OPTION_LABELS, texts)]


def _apply_question_flags(draft: QuestionDraft, args: argparse.Namespace) -> QuestionDraft:
    if args.text is not None:
        draft.question = args.text
    if args.type is not None:
        draft.type = args.type
    if args.option is not None:
        draft.options = _draft_options(args.option)
    if args.answer is not None:
        draft.correct_answer = [a.strip().upper() if draft.type != "fill_in_the_blanks" else a for a in args.answer]
    if args.explanation is not None:
        draft.explanation = args.explanation
    if args.chapter is not None:
        draft.chapter = args.chapter
    return draft


def _cmd_question(sm: SessionManager, args: argparse.Namespace, ui: UI) -> int:
    _open_subject(sm, args.subject, ui)
    assert sm.bank is not None
    if args.action == "list":
        for q in sm.bank.questions:
            ui["inform"](f"{q.id}: [{q.type}] {q.question}")
        return 0
    if args.action == "add":
        q = sm.add_question(_apply_question_flags(QuestionDraft(question=""), args))
        ui["inform"](f"Added question {q.id}.")
        return 0
    existing = sm.bank.get(args.id)
    if existing is None:
        raise SessionRejected(f"Question {args.id} does not exist.")
    if args.action == "edit":
        q = sm.update_question(args.id, _apply_question_flags(QuestionDraft.from_question(existing), args))
        ui["inform"](f"Updated question {q.id}.")
        return 0
    if not (args.yes or ui["confirm"]("Permanently delete this question and its stats?")):
        ui["inform"]("Cancelled.")
        return 0
    sm.delete_question(args.id)
    ui["inform"](f"Deleted question {args.id}.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="examtrainer")
    p.add_argument("--version", action="version", version=f"examtrainer {__version__}")
    p.add_argument("--config", default=None, help="Path to YAML config")
    p.add_argument("--explain", action="store_true", help="Print one-line traces at milestones")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = p.add_subparsers(dest="cmd", required=True)

    sub.add_parser("subjects")

    rp = sub.add_parser("run")
    rp.add_argument("--subject", required=True)
    rp.add_argument("--mode", choices=[m.value for m in ExamMode], default=None)
    rp.add_argument("--count", choices=["10", "20", "30", "all"], default=None)
    rp.add_argument("--preset", choices=list(EXAM_PRESETS), default=None)

    hp = sub.add_parser("history")
    hp.add_argument("--subject", default=None)
    hp.add_argument("--limit", type=int, default=20)

    sp = sub.add_parser("stats")
    sp.add_argument("--subject", required=True)
    sp.add_argument("--ndjson", default=None, help="Write per-question rows as NDJSON")
    sp.add_argument("--parquet", default=None, help="Write per-question rows as Parquet")
    sp.add_argument("--plot", default=None, help="Directory for PNG plots")

    ez = sub.add_parser("export-zip")
    ez.add_argument("path")

    iz = sub.add_parser("import-zip")
    iz.add_argument("path")
    iz.add_argument("--yes", action="store_true")

    eq = sub.add_parser("export-questions")
    eq.add_argument("--subject", required=True)
    eq.add_argument("path")

    iq = sub.add_parser("import-questions")
    iq.add_argument("--subject", required=True)
    iq.add_argument("--policy", choices=[m.value for m in MergePolicy], default=MergePolicy.UPDATE.value)
    iq.add_argument("--yes", action="store_true")
    iq.add_argument("path")

    ep = sub.add_parser("export-progress")
    ep.add_argument("path")

    ip = sub.add_parser("import-progress")
    ip.add_argument("path")
    ip.add_argument("--yes", action="store_true")

    rq = sub.add_parser("reset-questions")
    rq.add_argument("--subject", required=True)
    rq.add_argument("--yes", action="store_true")

    cd = sub.add_parser("clear-data")
    cd.add_argument("--yes", action="store_true")

    eb = sub.add_parser("export-backup", help="Full backup as one JSON file")
    eb.add_argument("path")

    ib = sub.add_parser("import-backup")
    ib.add_argument("path")
    ib.add_argument("--yes", action="store_true")

    eqz = sub.add_parser("export-questions-zip", help="Custom question banks only")
    eqz.add_argument("path")

    es = sub.add_parser("export-stats")
    es.add_argument("path")

    er = sub.add_parser("export-results")
    er.add_argument("path")

    sj = sub.add_parser("subject")
    sj_sub = sj.add_subparsers(dest="action", required=True)
    sa = sj_sub.add_parser("add")
    sa.add_argument("--name", required=True)
    sa.add_argument("--description", required=True)
    sa.add_argument("--icon", default=None)
    se = sj_sub.add_parser("edit")
    se.add_argument("id")
    se.add_argument("--name", default=None)
    se.add_argument("--description", default=None)
    se.add_argument("--icon", default=None)
    sr = sj_sub.add_parser("remove")
    sr.add_argument("id")
    sr.add_argument("--yes", action="store_true")

    qn = sub.add_parser("question")
    qn_sub = qn.add_subparsers(dest="action", required=True)
    ql = qn_sub.add_parser("list")
    ql.add_argument("--subject", required=True)
    for action in ("add", "edit"):
        qp = qn_sub.add_parser(action)
        qp.add_argument("--subject", required=True)
        if action == "edit":
            qp.add_argument("--id", type=int, required=True)
        qp.add_argument("--text", required=action == "add", default=None)
        qp.add_argument("--type", choices=["single", "multiple", "fill_in_the_blanks"], default=None)
        qp.add_argument("--option", action="append", default=None, help="Option text; repeat for B, C, ...")
        qp.add_argument("--answer", action="append", default=None, help="Correct label or accepted text; repeatable")
        qp.add_argument("--explanation", required=action == "add", default=None)
        qp.add_argument("--chapter", default=None)
    qd = qn_sub.add_parser("delete")
    qd.add_argument("--subject", required=True)
    qd.add_argument("--id", type=int, required=True)
    qd.add_argument("--yes", action="store_true")
    return p


def main(argv: list[str] | None = None, *, ui: UI | None = None, manager: SessionManager | None = None) -> int:
    args = build_parser().parse_args(argv)
    cfg = validate_config(load_config(args.config))
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else getattr(logging, cfg["logging"]["level"]),
        format="%(levelname)s %(name)s: %(message)s",
    )
    seed_if_needed()
    if args.explain:
        from .explain import enable as explain_enable
        explain_enable(True)

    ui = ui or _build_ui()
    sm = manager or _make_manager(cfg)
    for notice in sm.notices:
        ui["inform"](f"NOTE: {notice}")

    simple = {
        "subjects": _cmd_subjects,
        "history": _cmd_history,
        "export-zip": _cmd_export_zip,
        "import-zip": _cmd_import_zip,
        "export-questions": _cmd_export_questions,
        "import-questions": _cmd_import_questions,
        "export-progress": _cmd_export_progress,
        "import-progress": _cmd_import_progress,
        "reset-questions": _cmd_reset_questions,
        "clear-data": _cmd_clear_data,
        "export-backup": _cmd_export_backup,
        "import-backup": _cmd_import_backup,
        "export-questions-zip": _cmd_export_questions_zip,
        "export-stats": _cmd_export_stats,
        "export-results": _cmd_export_results,
        "subject": _cmd_subject,
        "question": _cmd_question,
    }
    try:
        if args.cmd == "run":
            return _cmd_run(sm, args, ui, cfg)
        if args.cmd == "stats":
            return _cmd_stats(sm, args, ui, cfg)
        return simple[args.cmd](sm, args, ui)
    except ExamTrainerError as e:
        ui["inform"](f"ERROR: {e.message}")
        return 1
    except (OSError, StoreError) as e:
        logger.debug("I/O failure", exc_info=True)
        ui["inform"](f"ERROR: {e}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
