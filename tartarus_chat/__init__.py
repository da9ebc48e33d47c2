"""TARTARUS Chat — terminal client for the TARTARUS relay."""
