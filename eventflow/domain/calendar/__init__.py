"""Calendar domain - team lanes, column sizing and event mutations"""
