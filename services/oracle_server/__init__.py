"""FlightSurety Oracle Server (port 3000).

Registers a pool of simulated oracle accounts with FlightSuretyApp and
answers every ``OracleRequest`` event whose index they hold with a
randomly chosen flight status code.
"""
