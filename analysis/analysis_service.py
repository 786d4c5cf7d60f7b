from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import pandas as pd

from preprocessing.rr_preprocessor import FilterResult, RRPreprocessor
from utils.errors import InsufficientDataError
from utils.hrv_config import HRVConfig
from utils.logging_utils import log_progress_bar
from utils.parallel_runner import ParallelTaskRunner

from .dfa_analyzer import DFAAnalyzer, DFAResult
from .entropy_analyzer import EntropyAnalyzer, EntropyProfile
from .hrv_analyzer import HRVAnalyzer
from .poincare_analyzer import PoincareAnalyzer, PoincareResult
from .psd_analyzer import PSDAnalyzer, SpectralResult


@dataclass
class HRVReport:
    filtered: FilterResult
    config: HRVConfig
    time_domain: Optional[Dict[str, float]] = None
    fragmentation: Optional[Dict[str, float]] = None
    poincare: Optional[PoincareResult] = None
    dfa: Optional[DFAResult] = None
    mse: Optional[EntropyProfile] = None
    spectral: Optional[SpectralResult] = None
    skipped: Dict[str, str] = field(default_factory=dict)  # component -> reason

    def to_frame(self, name=None) -> pd.DataFrame:
        """One-row table of all metrics. SD1/SD2 in ms, spectral powers in ms^2."""
        row: Dict[str, Any] = {'n_raw': self.filtered.mask.n_raw, 'n_nn': len(self.filtered.nni)}
        row.update(self.time_domain or {})
        row.update(self.fragmentation or {})
        if self.poincare is not None:
            row['SD1'] = self.poincare.sd1 * 1000.0
            row['SD2'] = self.poincare.sd2 * 1000.0
        if self.dfa is not None:
            row['alpha1'] = self.dfa.alpha1.slope
            row['alpha2'] = self.dfa.alpha2.slope
        if self.mse is not None:
            row['SampEn'] = self.mse.values[0]
            row.update({f"MSE{int(s)}": v for s, v in zip(self.mse.scales, self.mse.values)})
        if self.spectral is not None:
            for key, value in self.spectral.metrics().items():
                row[key] = value * 1e6 if '_PWR' in key else value
        return pd.DataFrame([row], index=pd.Index([name if name is not None else 0], name='series'))


class AnalysisService:
    def __init__(self, logger, main_config=None):
        self.logger = logger
        self.main_config = self._resolve_config(main_config)
        self.rr_preprocessor = RRPreprocessor(logger)
        self.hrv_analyzer = HRVAnalyzer(logger)
        self.poincare_analyzer = PoincareAnalyzer(logger)
        self.dfa_analyzer = DFAAnalyzer(logger)
        self.entropy_analyzer = EntropyAnalyzer(logger)
        self.psd_analyzer = PSDAnalyzer(logger)
        self.logger.info("AnalysisService initialized (delegation mode).")

    @staticmethod
    def _resolve_config(config):
        if config is None:
            return HRVConfig()
        if isinstance(config, dict):
            return HRVConfig.from_dict(config)
        return config.validate()

    def _run_component(self, report, name, func, *args):
        try:
            return func(*args)
        except InsufficientDataError as e:
            self.logger.warning(f"AnalysisService - {name} skipped: {e}")
            report.skipped[name] = str(e)
            return None

    def analyze(self, series, config=None):
        """
        Filters one interval series and runs every HRV stage on the clean NN intervals.

        Args:
            series (IntervalSeries): Raw RR intervals.
            config (HRVConfig or dict): Overrides the service configuration for this call.
        Returns:
            HRVReport: Results per stage. Stages that lacked data are listed in
                       report.skipped instead of aborting the analysis.
        Raises:
            InsufficientDataError: If fewer than two intervals survive filtering.
        """
        config = self._resolve_config(config) if config is not None else self.main_config
        filtered = self.rr_preprocessor.filter_intervals(series, config.filter).require_sufficient(2)
        nni, tnn = filtered.nni, filtered.tnn
        report = HRVReport(filtered=filtered, config=config)

        report.time_domain = self._run_component(report, 'time_domain', self.hrv_analyzer.time_domain, nni, config.time_domain)
        report.fragmentation = self._run_component(report, 'fragmentation', self.hrv_analyzer.fragmentation, nni)
        report.poincare = self._run_component(report, 'poincare', self.poincare_analyzer.analyze, nni, config.poincare)
        report.dfa = self._run_component(report, 'dfa', self.dfa_analyzer.analyze, nni, tnn, config.dfa)
        report.mse = self._run_component(report, 'mse', self.entropy_analyzer.multiscale_entropy,
                                         nni, config.entropy.max_scale, config.entropy.m, config.entropy.r)
        report.spectral = self._run_component(report, 'spectral', self.psd_analyzer.analyze, nni, tnn, config.spectral)

        self.logger.info(f"AnalysisService - analysis of {len(nni)} NN intervals done; skipped: {list(report.skipped) or 'none'}.")
        return report

    def analyze_many(self, series_list, config=None, names=None, max_workers=4):
        """
        Analyzes independent interval series in parallel.

        Returns:
            pd.DataFrame: One row per series (indexed by names, or position). A series
                          whose analysis failed yields a row of NaN.
        """
        config = self._resolve_config(config) if config is not None else self.main_config
        names = list(names) if names is not None else list(range(len(series_list)))
        update, close = log_progress_bar(self.logger, len(series_list), desc="HRV analysis")
        runner = ParallelTaskRunner(lambda series: self.analyze(series, config), list(series_list),
                                    self.logger.name, max_workers=max_workers, on_task_done=update)
        try:
            reports = runner.run()
        finally:
            close()

        frames = [report.to_frame(name) for name, report in zip(names, reports) if report is not None]
        frame = pd.concat(frames) if frames else pd.DataFrame()
        frame = frame.reindex(pd.Index(names, name='series'))
        failed = [name for name, report in zip(names, reports) if report is None]
        if failed:
            self.logger.warning(f"AnalysisService - {len(failed)} of {len(names)} series failed: {failed}")
        return frame
