"""Main CLI entry point for docintake"""

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Optional

from docintake.config import IntakeConfig, ConfigValidationError
from docintake.errors import DocIntakeError, BatchCancelledError, TemplateSourceError, remediation_for
from docintake.models import DocumentProcessingResult, BatchResult, ProcessingStatus
from docintake.pipeline.batch import BatchOrchestrator, collect_documents
from docintake.pipeline.document import DocumentPipeline
from docintake.processing.registry import create_default_registry
from docintake.templates.matcher import TemplateMatcher
from docintake.templates.store import TemplateStore, load_template_file


STATUS_ICONS = {
    ProcessingStatus.SUCCESS: "✅",
    ProcessingStatus.PARTIAL_SUCCESS: "⚠️ ",
    ProcessingStatus.FAILED: "❌",
}

CONFIG_SECTIONS = list(IntakeConfig.SECTIONS)


def create_parser():
    """Create the main argument parser"""
    parser = argparse.ArgumentParser(
        prog="docintake",
        description="Document intake - template matching and field extraction for threat-intelligence imports"
    )

    # Global options
    parser.add_argument("--config", "-c", type=str, help="Path to configuration file")
    parser.add_argument("--templates-dir", "-t", type=str, help="Override templates directory")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose output")
    parser.add_argument("--output", "-o", type=str, help="Write results as JSON to this file")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Process command
    process_parser = subparsers.add_parser("process", help="Process a single document")
    process_parser.add_argument("file_path", help="Path to the document")
    process_parser.add_argument("--template", help="Assign this template id instead of automatic matching")

    # Batch command
    batch_parser = subparsers.add_parser("batch", help="Process a directory or a list of documents")
    batch_parser.add_argument("paths", nargs="+", help="Directory or document paths")
    batch_parser.add_argument("--max-concurrent", "-j", type=int, help="Maximum documents processed at once")
    batch_parser.add_argument("--stop-on-error", action="store_true", help="Stop admitting documents after the first failure")
    batch_parser.add_argument("--recursive", "-r", action="store_true", help="Scan directories recursively")
    batch_parser.add_argument("--pattern", "-p", default="*", help="File pattern for directories (default: *)")

    # Match command
    match_parser = subparsers.add_parser("match", help="Show template ranking for a document")
    match_parser.add_argument("file_path", help="Path to the document")

    # Templates command
    templates_parser = subparsers.add_parser("templates", help="Inspect templates")
    templates_subparsers = templates_parser.add_subparsers(dest="templates_action", help="Template actions")
    templates_subparsers.add_parser("list", help="List loaded templates")
    templates_validate_parser = templates_subparsers.add_parser("validate", help="Validate template files")
    templates_validate_parser.add_argument("files", nargs="*", help="Template files (default: templates directory)")

    # Formats command
    subparsers.add_parser("formats", help="List supported document formats")

    # Config command
    config_parser = subparsers.add_parser("config", help="Manage configuration")
    config_subparsers = config_parser.add_subparsers(dest="config_action", help="Configuration actions")

    config_show_parser = config_subparsers.add_parser("show", help="Show current configuration")
    config_show_parser.add_argument("--section", choices=CONFIG_SECTIONS, help="Show specific section only")

    config_set_parser = config_subparsers.add_parser("set", help="Set configuration value")
    config_set_parser.add_argument("key", help="Configuration key (e.g., 'matching.minimum_gap')")
    config_set_parser.add_argument("value", help="Configuration value")

    config_get_parser = config_subparsers.add_parser("get", help="Get configuration value")
    config_get_parser.add_argument("key", help="Configuration key")

    config_subparsers.add_parser("validate", help="Validate current configuration")

    config_reset_parser = config_subparsers.add_parser("reset", help="Reset configuration to defaults")
    config_reset_parser.add_argument("--confirm", action="store_true", help="Confirm reset without prompt")

    return parser


def _config_path(args) -> Optional[Path]:
    return Path(args.config) if getattr(args, "config", None) else None


def _write_output(args, data: Any) -> None:
    """Write JSON output if --output was given"""
    if not getattr(args, "output", None):
        return
    output_path = Path(args.output)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False, default=str)
    print(f"💾 Results written to: {output_path}")


def _load_templates(config: IntakeConfig):
    store = TemplateStore(config.templates_path)
    templates = store.load()
    for file_name, errors in store.load_errors.items():
        print(f"⚠️  Skipped invalid template file {file_name}: {errors[0]}")
    return store, templates


def _print_result(result: DocumentProcessingResult, details: bool = True) -> None:
    icon = STATUS_ICONS[result.status]
    print(f"{icon} {Path(result.path).name}: {result.status.value} (confidence: {result.confidence:.2f})")

    match = result.match_result
    if match and match.selected_template:
        print(f"   🏷️  Template: {match.selected_template.name} ({match.decision_reason.value})")
        if match.requires_confirmation:
            print("   ⚠️  Template selection requires confirmation")

    if details:
        for field_result in result.field_results:
            marker = "✅" if field_result.succeeded else "❌"
            method = f" [{field_result.method.value}]" if field_result.method else ""
            print(f"   {marker} {field_result.field_name}: {field_result.value or '-'}{method}")

    for error in result.errors:
        if error.field_name and not details:
            continue
        print(f"   ❌ [{error.code}] {error.message}")
        guidance = remediation_for(error.code)
        if guidance and not error.field_name:
            print(f"      💡 {guidance[0]}")

    print(f"   ⏱️  Processing time: {result.elapsed:.2f}s")


def _print_batch_summary(batch: BatchResult) -> None:
    print(f"\n📊 Batch Summary:")
    print(f"   📄 Total files: {batch.total_files}")
    print(f"   ✅ Successful: {batch.successful_files} ({batch.partial_files} partial)")
    print(f"   ❌ Failed: {batch.failed_files}")
    print(f"   ⏭️  Skipped: {batch.skipped_files}")
    print(f"   📈 Success rate: {batch.success_rate:.0%}")
    print(f"   ⏱️  Total time: {batch.duration:.1f}s")
    if batch.cancelled:
        print("   🛑 Batch was cancelled before all documents ran")


def handle_process(args, config: IntakeConfig):
    """Handle process command"""
    file_path = Path(args.file_path)
    _, templates = _load_templates(config)

    print(f"🔄 Processing: {file_path}")
    pipeline = DocumentPipeline.from_config(config)
    result = pipeline.process(str(file_path), templates, template_id=args.template)

    _print_result(result)
    _write_output(args, result.to_dict())

    if result.status == ProcessingStatus.FAILED:
        sys.exit(1)


def handle_batch(args, config: IntakeConfig):
    """Handle batch command"""
    paths = []
    for raw in args.paths:
        path = Path(raw)
        if path.is_dir():
            found = collect_documents(path, args.recursive, args.pattern)
            print(f"📁 {path}: {len(found)} files")
            paths.extend(found)
        else:
            paths.append(path)

    pipeline = DocumentPipeline.from_config(config)
    orchestrator = BatchOrchestrator(pipeline, TemplateStore(config.templates_path), config)

    supported = orchestrator.filter_supported(paths)
    ignored = len(paths) - len(supported)
    if ignored:
        print(f"⏭️  Ignoring {ignored} files with unsupported formats")
    if not supported:
        print("📭 No supported documents found")
        return

    print(f"🔄 Processing {len(supported)} documents...")

    def progress(completed: int, total: int, document_id: str):
        print(f"[{completed}/{total}] {Path(document_id).name}")

    try:
        batch = orchestrator.process_batch(
            supported,
            max_concurrent=args.max_concurrent,
            continue_on_error=False if args.stop_on_error else None,
            progress_callback=progress,
        )
    except BatchCancelledError as e:
        print(f"\n🛑 {e.message}")
        batch = e.batch_result

    print()
    for result in batch.results:
        _print_result(result, details=args.verbose)
    _print_batch_summary(batch)
    _write_output(args, batch.to_dict())

    if batch.failed_files or batch.cancelled:
        print(f"\n⚠️  {batch.failed_files} documents failed. Check the error messages above.")
        sys.exit(1)


def handle_match(args, config: IntakeConfig):
    """Handle match command"""
    _, templates = _load_templates(config)
    pipeline = DocumentPipeline.from_config(config)
    document = pipeline.read(args.file_path)

    matcher = TemplateMatcher(config.matching)
    result = matcher.match(document.text, templates, Path(args.file_path).suffix)

    print(f"🔍 Template ranking for {Path(args.file_path).name}: {result.decision_reason.value}")
    if not result.candidates:
        print("   📭 No candidate templates")
    for rank, candidate in enumerate(result.candidates, 1):
        selected = "👉" if result.selected_template is candidate.template else "  "
        print(f" {selected} {rank}. {candidate.template.name} ({candidate.template_id}): {candidate.score:.2f}")
        if args.verbose:
            print(f"       required: {', '.join(candidate.matched_required_keywords) or '-'}")
            print(f"       optional: {', '.join(candidate.matched_optional_keywords) or '-'}")
    if args.verbose:
        for template_id, reason in sorted(result.excluded.items()):
            print(f"    ✖ {template_id}: {reason}")
    if result.requires_confirmation:
        print("⚠️  Selection requires confirmation")

    _write_output(args, result.to_dict())


def handle_templates(args, config: IntakeConfig):
    """Handle templates command"""
    if args.templates_action == "list":
        _, templates = _load_templates(config)
        if not templates:
            print(f"📭 No templates found in {config.templates_path}")
            return
        print(f"📋 {len(templates)} templates in {config.templates_path}:")
        for template in templates:
            state = "✅" if template.active else "⏸️ "
            print(f"  {state} {template.template_id}: {template.name} "
                  f"[{template.category}] v{template.version}, {len(template.fields)} fields")

    elif args.templates_action == "validate":
        files = [Path(f) for f in args.files] or sorted(config.templates_path.glob("*.json"))
        invalid = 0
        for path in files:
            try:
                templates = load_template_file(path)
            except TemplateSourceError as e:
                print(f"❌ {path.name}: {e.message}")
                invalid += 1
                continue
            for template in templates:
                errors = template.validate()
                if errors:
                    invalid += 1
                    print(f"❌ {path.name} ({template.template_id}):")
                    for error in errors:
                        print(f"  - {error}")
                else:
                    print(f"✅ {path.name} ({template.template_id})")
        if invalid:
            sys.exit(1)

    else:
        print("ℹ️  Use 'docintake templates list' or 'docintake templates validate'.")


def handle_formats(args, config: IntakeConfig):
    """Handle formats command"""
    registry = create_default_registry(config)
    print("📄 Supported formats:")
    for strategy in sorted(registry.strategies(), key=lambda s: -s.priority):
        print(f"  {strategy.name:<6} priority {strategy.priority:>3}: {', '.join(sorted(strategy.extensions))}")
    if not config.ocr.enabled:
        print("ℹ️  OCR is disabled; scanned PDFs are read without a text layer")


def handle_config(args, config: IntakeConfig):
    """Handle config command"""
    try:
        if not args.config_action:
            print("ℹ️  Use 'docintake config show' to view configuration or 'docintake config --help' for options.")
            return

        if args.config_action == "show":
            _show_config(config, args.section)

        elif args.config_action == "set":
            config.update_setting(args.key, args.value)
            config.validate_and_raise()
            config.save(_config_path(args))
            print(f"✅ Set {args.key} = {args.value}")
            print("💾 Configuration saved")

        elif args.config_action == "get":
            value = config.get_setting(args.key)
            print(f"{args.key} = {value}")

        elif args.config_action == "validate":
            errors = config.validate()
            if errors:
                print("❌ Configuration validation failed:")
                for error in errors:
                    print(f"  - {error}")
                sys.exit(1)
            else:
                print("✅ Configuration is valid")

        elif args.config_action == "reset":
            _reset_config(args)

    except ConfigValidationError as e:
        print(f"❌ Configuration error: {e}", file=sys.stderr)
        sys.exit(1)


def _show_config(config: IntakeConfig, section: Optional[str] = None):
    """Display configuration"""
    data = config.to_dict()
    sections = [section] if section else CONFIG_SECTIONS
    for name in sections:
        print(f"\n⚙️  {name.capitalize()}:")
        for key, value in data[name].items():
            print(f"  {key}: {value}")

    if not section:
        print("\n📁 Paths:")
        print(f"  Data Directory: {config.data_path}")
        print(f"  Templates Directory: {config.templates_path}")
        print(f"  Logs Directory: {config.logs_path}")


def _reset_config(args):
    """Reset configuration to defaults"""
    if not args.confirm:
        response = input("⚠️  This will reset all configuration to defaults. Continue? (y/N): ")
        if response.lower() not in ['y', 'yes']:
            print("❌ Reset cancelled")
            return

    config = IntakeConfig.create_default()
    config.save(_config_path(args))
    print("✅ Configuration reset to defaults")
    print("💾 Configuration saved")


def main(argv=None):
    """Main CLI entry point"""
    parser = create_parser()
    args = parser.parse_args(argv)

    from docintake.logging_setup import setup_cli_logging, log_system_info

    try:
        config = IntakeConfig.load(_config_path(args))
        if args.templates_dir:
            config.templates_dir = args.templates_dir
    except Exception as e:
        print(f"Error loading configuration: {e}", file=sys.stderr)
        sys.exit(1)

    logger = setup_cli_logging(verbose=args.verbose, config=config)
    if args.verbose:
        log_system_info(logger)

    if not args.command:
        parser.print_help()
        return

    logger.debug(f"Executing command: {args.command}")

    command_handlers = {
        "process": handle_process,
        "batch": handle_batch,
        "match": handle_match,
        "templates": handle_templates,
        "formats": handle_formats,
        "config": handle_config,
    }

    handler = command_handlers.get(args.command)
    if handler:
        try:
            handler(args, config)
        except KeyboardInterrupt:
            logger.info("Operation cancelled by user")
            print("\n❌ Operation cancelled by user")
            sys.exit(1)
        except DocIntakeError as e:
            logger.error(f"Command {args.command} failed: [{e.error_code}] {e.message}")
            print(f"❌ {e}", file=sys.stderr)
            sys.exit(1)
        except Exception as e:
            logger.error(f"Command {args.command} failed: {e}", exc_info=True)
            print(f"❌ Command failed: {e}", file=sys.stderr)
            sys.exit(1)
    else:
        logger.error(f"Unknown command: {args.command}")
        print(f"Unknown command: {args.command}", file=sys.stderr)
        sys.exit(1)


def cli_main():
    """Entry point for the CLI"""
    main()


if __name__ == "__main__":
    cli_main()
