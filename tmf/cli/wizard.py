"""Interactive wizard mode for Takeout Metadata Fixer."""

from dataclasses import dataclass
from typing import Callable, List, Optional

from tmf.core.models import ProcessMode
from tmf.core.orchestrator import DEFAULT_WORKERS
from tmf.cli.settings import Settings

MODE_CHOICES = {
    "1": ProcessMode.INPLACE,
    "2": ProcessMode.MERGE,
    "3": ProcessMode.ZIP,
}


@dataclass
class WizardAnswers:
    """What the operator chose in the wizard."""
    paths: List[str]
    mode: ProcessMode
    destination: Optional[str] = None
    workers: int = DEFAULT_WORKERS


def _ask(prompt: str, default: str = "", input_fn: Callable[[str], str] = input) -> str:
    suffix = f" [{default}]" if default else ""
    answer = input_fn(f"{prompt}{suffix}: ").strip()
    return answer or default


def run_wizard(
    settings: Optional[Settings] = None,
    input_fn: Callable[[str], str] = input
) -> Optional[WizardAnswers]:
    """Run interactive wizard to get path, mode, destination and worker count.

    Previous answers stored in settings are offered as defaults.

    Args:
        settings: Persisted defaults (optional).
        input_fn: Prompt function (tests substitute their own).

    Returns:
        WizardAnswers, or None if cancelled or no path given.
    """
    print("\nNo path given on the command line, starting the setup wizard")

    last_paths = settings.get("last_paths", []) if settings else []
    last_mode = settings.get("last_mode", "inplace") if settings else "inplace"
    last_destination = settings.get("last_destination", "") if settings else ""
    last_workers = settings.workers if settings else DEFAULT_WORKERS

    try:
        path = _ask(
            "Enter path to your Takeout folder or file",
            last_paths[0] if last_paths else "",
            input_fn
        )
        if not path:
            return None

        print("How should fixed files be written?")
        print("  1) inplace - modify the original files")
        print("  2) merge   - copy fixed files into a destination folder")
        print("  3) zip     - pack fixed files into a zip archive")
        default_choice = next(
            (k for k, v in MODE_CHOICES.items() if v.value == last_mode), "1"
        )
        choice = _ask("Mode", default_choice, input_fn)
        mode = MODE_CHOICES.get(choice)
        if mode is None:
            try:
                mode = ProcessMode(choice.lower())
            except ValueError:
                print(f"Unknown mode: {choice}")
                return None

        destination = None
        if mode is not ProcessMode.INPLACE:
            prompt = "Destination folder" if mode is ProcessMode.MERGE else "Archive file (.zip)"
            destination = _ask(prompt, last_destination, input_fn)
            if not destination:
                print("A destination is required for this mode.")
                return None

        answer = _ask("Files to process at once", str(last_workers), input_fn)
        try:
            workers = int(answer)
        except ValueError:
            workers = 0
        if workers < 1:
            print(f"Not a positive number: {answer}")
            return None

        return WizardAnswers(paths=[path], mode=mode, destination=destination, workers=workers)
    except (KeyboardInterrupt, EOFError):
        print("\nCancelled.")
        return None
