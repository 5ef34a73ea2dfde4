#!/usr/bin/env python

from profclust.purify.trim import trim_amount, trim_amounts, trim_alignment
from profclust.purify.derep import dereplicate, order_rows
from profclust.purify.purify import (
    PurifyConfig,
    PurifyRecord,
    PurifyResult,
    purify_alignment,
    finish_profile,
    report_table,
    write_report,
    read_report,
    IN_PROFILE,
    REDUNDANT,
    POOR_MATCH,
    REPORT_COLUMNS,
)
