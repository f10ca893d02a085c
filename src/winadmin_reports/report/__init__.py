from winadmin_reports.report.csv_writer import write_report
from winadmin_reports.report.nagios import NagiosResult, NagiosState, format_nagios

__all__ = ["NagiosResult", "NagiosState", "format_nagios", "write_report"]
