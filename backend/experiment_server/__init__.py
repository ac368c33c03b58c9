"""
Experiment Server Backend
=========================

Python package for the field-experiment data collector.

HOW IT'S ORGANIZED:
------------------
- models/    = Data structures (submissions, report windows, report documents)
- services/  = Workers (count submissions, build reports, send email)
- routers/   = API endpoints (where submissions come in)
- config.py  = Loads the JSON settings file
- main.py    = Puts it all together and starts the server
"""
