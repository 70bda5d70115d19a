"""
This package contains the parser composition and the scan pipeline of qtatoms.

The composition wires the default decoder set into a scanner, producing the
public parser entry point. The pipeline orchestrates scanning of whole files:
it turns each file into a chunk source, runs the parser, and collects the
resulting atom trees into a YAML report.
"""
