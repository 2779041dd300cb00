# WORKFLOW: ETL (Extract, Transform, Load) package for the arrivals reimport.
# Used by: CLI, import pipeline, tests
# Modules include:
# 1. value_parsers.py - Parse dates, compound quantities, prices and status phrases
# 2. sections.py - Track the destination/beneficiary section of each line
# 3. row_parser.py - Turn export lines into ParsedRecord objects
# 4. validators.py - Report field-level issues in parsed records
# 5. aggregator.py - Group records into one contract per base contract number
# 6. records.py - In-memory record types shared by all stages
# 7. import_pipeline.py - Parse -> aggregate -> preview or persist
#
# ETL flow: Export -> Parse -> Aggregate -> Resolve master data -> Persist -> Link documents
# This ensures contracts and shipments are rebuilt consistently from the legacy export.

"""
ETL package for the arrivals export reimport.
"""
