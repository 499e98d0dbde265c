"""
batch.py

Batch layer running the transduction analysis over many images.

Images are independent, so each one is analysed by one worker of a process pool.
Images missing a requested channel are skipped and reported, the rest of the batch goes on.
BatchResult aggregates the per-image results into rows and per-metric columns that a
reporting layer can write in any format.

Classes:
    BatchResult: Ordered per-image results and skipped images of a batch.
    BatchAnalyzer: Runs a TransductionAnalyzer over a list of named images.
"""

import multiprocessing
import os
import time
from concurrent.futures import ProcessPoolExecutor, CancelledError

from errors import ChannelUnavailableError, AnalysisCancelled
from intensity import Metric
from parameters import PreprocessingParameters, TransductionParameters
from transduction import TransductionAnalyzer, ChannelAnalysisResult

WRITE_TIME = True


# set in each worker process, polled between pipeline stages
_stop_event = None


def _init_worker(stop_event):
    global _stop_event
    _stop_event = stop_event


def _analyse_image(preprocessing: PreprocessingParameters, transduction: TransductionParameters, image):
    should_stop = None if _stop_event is None else _stop_event.is_set
    return TransductionAnalyzer(preprocessing, transduction).analyse(image, should_stop)


class BatchResult:
    """
    Results of a batch in input order.

    Attributes:
        results (list[tuple[str, ChannelAnalysisResult]]): Image name and result of each analysed image.
        skipped (list[tuple[str, str]]): Image name and reason of each skipped image.
    """

    def __init__(self):
        self.results: list[tuple[str, ChannelAnalysisResult]] = []
        self.skipped: list[tuple[str, str]] = []

    def summary_rows(self) -> list[dict]:
        """
        One summary row per analysed image.

        Returns:
            list[dict]: The image name under 'file_name' plus the fields of
                ChannelAnalysisResult.get_dict() except the per-cell metrics.
        """
        rows = []
        for name, result in self.results:
            row = {'file_name': name}
            row.update({k: v for k, v in result.get_dict().items() if k != 'cells'})
            rows.append(row)
        return rows

    def metric_mappings(self) -> dict[Metric, list[tuple[str, list[int]]]]:
        """
        Per metric, the values of every measured cell of every image.

        Returns:
            dict: Metric -> list of (image name, values per cell).
        """
        return {metric: [(name, result.metric_values(metric)) for name, result in self.results]
                for metric in Metric}

    def max_rows(self) -> int:
        """Largest number of transduced target cells in one image, 0 for an empty batch."""
        return max((result.transduced_target_count for _, result in self.results), default=0)


class BatchAnalyzer:
    """
    Analyses a batch of images with a pool of worker processes, one image per worker.

    Attributes:
        preprocessing (PreprocessingParameters): Segmentation options.
        transduction (TransductionParameters): Channels and overlap threshold.
        max_workers (int): Number of worker processes; 1 runs in the calling process.
    """

    def __init__(self, preprocessing: PreprocessingParameters = None, transduction: TransductionParameters = None,
                 max_workers: int = None):
        self.preprocessing: PreprocessingParameters = preprocessing or PreprocessingParameters()
        self.transduction: TransductionParameters = transduction or TransductionParameters()
        self.max_workers: int = max_workers or os.cpu_count() or 1
        self._cancelled: bool = False
        self._futures: list = []
        self._stop_event = None

    def cancel(self):
        """
        Abandon the batch: images not started yet are dropped and running images stop at
        their next stage boundary, in the calling process or in the pool workers.
        """
        self._cancelled = True
        if self._stop_event is not None:
            self._stop_event.set()
        for future in self._futures:
            future.cancel()

    def _skip(self, batch: BatchResult, name: str, error: Exception):
        print(f"Skipping {name}: {error}")
        batch.skipped.append((name, str(error)))

    def process(self, named_images: list) -> BatchResult:
        """
        Analyse every image of the batch.

        Args:
            named_images (list[tuple[str, DataMatrix]]): Image name and image pairs.

        Returns:
            BatchResult: Results in input order; skipped images are listed separately.
        """
        self._cancelled = False
        batch = BatchResult()
        t_start = time.time()

        if self.max_workers == 1:
            self._process_serial(named_images, batch)
        else:
            self._process_pool(named_images, batch)

        if WRITE_TIME:
            print(f"Batch of {len(named_images)} images took {time.time() - t_start:.2f} seconds.")
        return batch

    def _process_serial(self, named_images: list, batch: BatchResult):
        analyzer = TransductionAnalyzer(self.preprocessing, self.transduction)
        for name, image in named_images:
            if self._cancelled:
                break
            try:
                batch.results.append((name, analyzer.analyse(image, should_stop=lambda: self._cancelled)))
            except ChannelUnavailableError as e:
                self._skip(batch, name, e)
            except AnalysisCancelled:
                break

    def _process_pool(self, named_images: list, batch: BatchResult):
        context = multiprocessing.get_context()
        self._stop_event = context.Event()
        if self._cancelled:
            self._stop_event.set()
        with ProcessPoolExecutor(max_workers=self.max_workers, mp_context=context,
                                 initializer=_init_worker, initargs=(self._stop_event,)) as executor:
            self._futures = [executor.submit(_analyse_image, self.preprocessing, self.transduction, image)
                             for _, image in named_images]
            try:
                for (name, _), future in zip(named_images, self._futures):
                    try:
                        batch.results.append((name, future.result()))
                    except ChannelUnavailableError as e:
                        self._skip(batch, name, e)
                    except (CancelledError, AnalysisCancelled):
                        continue
            finally:
                self._futures = []
                self._stop_event = None
