"""
Example handlers for examples/weather.yaml.

Run with:
    spectap serve examples/weather.yaml --mode live --handlers weather_handlers:HANDLERS
(from inside the examples/ directory)
"""

from spectap.contract import HandlerError
from spectap.runtime import HandlerRegistry


HANDLERS = HandlerRegistry()

STATIONS = {
    1: {'id': 1, 'name': 'San Jose', 'active': True, 'neighbours': []},
}


@HANDLERS.handler('weather.getWeather')
async def get_weather(params):
    days = [
        {'date': f'2026-01-{day + 1:02d}', 'high': 21.0, 'low': 12.5}
        for day in range(params['days'])
    ]
    return {'location': params['location'], 'unit': params['unit'], 'days': days}


@HANDLERS.handler('weather.getStation')
def get_station(params):
    station = STATIONS.get(params['id'])
    if station is None:
        raise HandlerError(f"Station {params['id']} not found", status=404)
    return station


@HANDLERS.handler('weather.createStation')
def create_station(params):
    station = dict(params['station'])
    STATIONS[station['id']] = station
    return station
