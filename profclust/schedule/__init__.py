#!/usr/bin/env python

from profclust.schedule.lpt import Job, Bin, BinResult, LPTScheduler, run_bin
