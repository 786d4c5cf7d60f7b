"""
Parallel Runner Utility Module
-----------------------------
Runs independent analysis tasks (one interval series each) on a thread pool.
"""
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Callable, List, Optional


class ParallelTaskRunner:
    """
    Applies one task function to each task input on a thread pool.
    A failing task is logged and leaves None in its result slot; the others proceed.
    """
    def __init__(self, task_function: Callable, task_inputs: List[Any], main_logger_name: str,
                 max_workers: int = 4, thread_name_prefix: str = "HRVWorker",
                 on_task_done: Optional[Callable[[], None]] = None):
        self.task_function = task_function
        self.task_inputs = task_inputs
        self.max_workers = max_workers
        self.thread_name_prefix = thread_name_prefix
        self.on_task_done = on_task_done
        self.logger = logging.getLogger(main_logger_name)
        self.errors = {}
        self.logger.info("ParallelTaskRunner initialized.")

    def run(self) -> List[Any]:
        """
        Runs all tasks and returns their results in input order.
        """
        results = [None] * len(self.task_inputs)
        self.errors = {}
        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix=self.thread_name_prefix) as executor:
            future_to_idx = {executor.submit(self.task_function, task_input): idx
                             for idx, task_input in enumerate(self.task_inputs)}
            for future in as_completed(future_to_idx):
                idx = future_to_idx[future]
                try:
                    results[idx] = future.result()
                except Exception as e:
                    self.logger.error(f"ParallelTaskRunner: Task {idx} failed: {e}", exc_info=True)
                    self.errors[idx] = e
                    results[idx] = None
                if self.on_task_done is not None:
                    self.on_task_done()
        return results
