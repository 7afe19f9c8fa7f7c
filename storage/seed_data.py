"""Records shipped with the registry for first-run installs."""

SEED_HACKATHONS = [
    {
        'id': 'hackmit-2025',
        'name': 'HackMIT',
        'location': 'Cambridge, MA, USA',
        'locationType': 'Offline',
        'coordinates': {'lat': 42.3601, 'lng': -71.0942},
        'startDate': '2025-09-13',
        'endDate': '2025-09-15',
        'timePeriod': 'Sep 13 - Sep 15, 2025',
        'conductedBy': 'MIT',
        'prizeMoney': '$10,000+',
        'prizeType': 'Price',
        'category': 'General',
        'participantCount': 1000,
        'url': 'https://hackmit.org',
        'relevanceScore': 98,
        'discoveryTier': 1,
    },
    {
        'id': 'ethindia-2025',
        'name': 'ETHIndia',
        'location': 'Bangalore, India',
        'locationType': 'Offline',
        'coordinates': {'lat': 12.9716, 'lng': 77.5946},
        'startDate': '2025-12-05',
        'endDate': '2025-12-07',
        'timePeriod': 'Dec 5 - Dec 7, 2025',
        'conductedBy': 'Devfolio',
        'prizeMoney': '$50,000',
        'prizeType': 'Price',
        'category': 'Blockchain & Web3',
        'participantCount': 2000,
        'url': 'https://ethindia.co',
        'relevanceScore': 95,
        'discoveryTier': 1,
    },
]
