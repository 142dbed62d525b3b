from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn, TimeRemainingColumn


class ProgressTracker:
    """Rich progress bar fed by percent callbacks from extractors."""

    def __init__(self, console):
        self.console = console
        self.progress = None
        self.task_id = None

    def create_progress(self):
        return Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            TimeRemainingColumn(),
            console=self.console
        )

    def __enter__(self):
        self.progress = self.create_progress()
        self.progress.__enter__()
        return self

    def __exit__(self, *exc):
        self.progress.__exit__(*exc)
        self.progress = None
        self.task_id = None

    def start(self, description: str):
        self.task_id = self.progress.add_task(description, total=100)

    def on_progress(self, percent: int):
        """Extraction progress callback. Safe to call from a worker thread."""
        if self.progress is None or self.task_id is None:
            return
        self.progress.update(self.task_id, completed=percent)

    def finish(self):
        if self.progress is not None and self.task_id is not None:
            self.progress.update(self.task_id, completed=100)
