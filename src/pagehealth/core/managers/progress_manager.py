# src/pagehealth/core/managers/progress_manager.py
import sys
import logging

from tqdm import tqdm

logger = logging.getLogger(__name__)


class ProgressManager:
    """
    Manages the complete lifecycle of a tqdm progress bar over validator completions.
    """

    def __init__(self, total: int, desc: str, unit: str = "check"):
        if total <= 0:
            total = 1

        self.failures = 0
        self.pbar = tqdm(
            total=total,
            desc=desc,
            unit=f" {unit}",
            dynamic_ncols=True,
            mininterval=0.2,
            postfix={"failures": 0},
            bar_format="{l_bar}{bar}| {n_fmt}/{total_fmt} [{elapsed}] {postfix}",
            file=sys.stdout
        )

    def advance(self, validator_id: str, failed: bool = False):
        """Marks one validator as finished."""
        if not self.pbar:
            return
        if failed:
            self.failures += 1
        self.pbar.update(1)
        self.pbar.set_postfix({"last": validator_id, "failures": self.failures}, refresh=False)

    def close(self):
        if not self.pbar:
            return
        try:
            self.pbar.set_postfix({"failures": self.failures}, refresh=True)
            self.pbar.close()
            logger.debug("ProgressManager: Progress bar closed.")
        except Exception as e:
            logger.error(f"Error encountered while closing progress bar: {e}")
        finally:
            self.pbar = None
