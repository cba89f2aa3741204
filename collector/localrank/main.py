"""ローカル検索順位トラッカー: メインエントリーポイント.

サブコマンド:
  track   実行対象のスケジュールで順位を取得・比較・アラート（毎時 cron）
  prune   保持期間を過ぎたスナップショット・アラートを削除（日次 cron）
  report  共有レポートの作成・参照
  audit   Web サイト診断
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from dataclasses import asdict
from datetime import datetime

from localrank.audit import AuditError, scan_site
from localrank.config import LOG_DIR
from localrank.prune import run_prune
from localrank.report import ReportError, create_report, get_report_data
from localrank.tracker import run_tracking


def setup_logging() -> None:
    """ロギングの初期設定."""
    LOG_DIR.mkdir(exist_ok=True)
    log_file = LOG_DIR / f"collector_{datetime.now().strftime('%Y%m%d')}.log"
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(log_file, encoding="utf-8"),
        ],
    )


def _print_json(data) -> None:
    print(json.dumps(data, ensure_ascii=False, indent=2, default=str))


def cmd_track(args: argparse.Namespace) -> int:
    logger = logging.getLogger(__name__)
    logger.info("=== 順位取得 開始 ===")
    start_time = time.time()

    report = run_tracking()

    elapsed = time.time() - start_time
    failed = sum(1 for r in report.results if r.status not in ("success", "no_changes"))
    logger.info("=== 順位取得 完了 ===")
    logger.info("対象: %d 件, 失敗・スキップ: %d 件, 所要時間: %.1f 秒",
                report.checked, failed, elapsed)
    _print_json(asdict(report))
    return 0


def cmd_prune(args: argparse.Namespace) -> int:
    _print_json(run_prune())
    return 0


def cmd_report(args: argparse.Namespace) -> int:
    try:
        if args.report_command == "create":
            _print_json(create_report(args.owner_id, args.cohort_id))
        else:
            _print_json(asdict(get_report_data(args.slug)))
    except ReportError as e:
        logging.getLogger(__name__).error("%s", e)
        return 1
    return 0


def cmd_audit(args: argparse.Namespace) -> int:
    try:
        pages = scan_site(args.url, args.mode, args.max_pages, args.max_depth)
    except AuditError as e:
        logging.getLogger(__name__).error("%s", e)
        return 1
    _print_json([asdict(p) for p in pages])
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="localrank", description="ローカル検索順位トラッカー")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("track", help="実行対象スケジュールの順位取得").set_defaults(func=cmd_track)
    sub.add_parser("prune", help="保持期間切れデータの削除").set_defaults(func=cmd_prune)

    report = sub.add_parser("report", help="共有レポート")
    report_sub = report.add_subparsers(dest="report_command", required=True)
    create = report_sub.add_parser("create", help="レポート作成")
    create.add_argument("owner_id")
    create.add_argument("cohort_id")
    show = report_sub.add_parser("show", help="レポート参照")
    show.add_argument("slug")
    report.set_defaults(func=cmd_report)

    audit = sub.add_parser("audit", help="Web サイト診断")
    audit.add_argument("url")
    audit.add_argument("--mode", choices=["single", "full"], default="single")
    audit.add_argument("--max-pages", type=int, default=None)
    audit.add_argument("--max-depth", type=int, default=None)
    audit.set_defaults(func=cmd_audit)

    return parser


def main(argv: list[str] | None = None) -> int:
    """メイン処理."""
    args = build_parser().parse_args(argv)
    setup_logging()
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
