from typing import List
from urllib.parse import quote_plus

from services.generator.app.context import GenerationContext
from services.generator.app.keys import to_date
from services.generator.app.sources.base import SourceAdapter
from shared.schemas.feed import Category, FeedEntry, Link

SEASONAL_TRENDS = {
    "winter": [
        ("Quiet Luxury & Layered Knits", "Oversized cashmere, tonal layering, and minimalist accessories define this season."),
        ("Shearling Everything", "Shearling-lined coats, collars and clogs bring texture and warmth to winter outfits."),
        ("Burgundy Monochrome", "Head-to-toe oxblood and wine tones replace black as the cold-weather neutral."),
        ("Après-Ski Streetwear", "Fair Isle sweaters, puffer vests and moon boots move from the slopes to the city."),
    ],
    "spring": [
        ("Sheer Fabrics & Pastel Power", "Translucent layers and soft pastels take center stage for spring."),
        ("Trench Coat Reinvented", "Cropped, belted and color-blocked trenches update the classic spring layer."),
        ("Butter Yellow Accents", "A soft buttery yellow shows up on knits, bags and tailoring."),
        ("Ballet Flats Revival", "Mesh, mary-jane and square-toe ballet flats replace sneakers for everyday wear."),
    ],
    "summer": [
        ("Coastal Grandmother & Linen Everything", "Relaxed linen sets, woven bags, and effortless seaside elegance."),
        ("Crochet & Open Knits", "Handmade-looking crochet tops and dresses for beach-to-dinner dressing."),
        ("Fisherman Sandals", "Woven leather sandals pair with everything from shorts to slip dresses."),
        ("Citrus Brights", "Tangerine, lime and lemon tones bring energy to summer wardrobes."),
    ],
    "fall": [
        ("Dark Academia & Rich Textures", "Tweed, leather, deep burgundy, and scholarly silhouettes make a comeback."),
        ("Suede Season", "Suede jackets, skirts and boots in tobacco and chocolate browns."),
        ("Western Revival", "Cowboy boots, fringe and bolo details blend into city tailoring."),
        ("Oversized Blazers", "Boyfriend-cut blazers layered over knits and denim define fall workwear."),
    ],
}


def season_for_month(month: int) -> str:
    if month in (12, 1, 2):
        return "winter"
    if month <= 5:
        return "spring"
    if month <= 8:
        return "summer"
    return "fall"


class TrendAdapter(SourceAdapter):
    """First seasonal trend not yet featured. Deterministic, no network."""

    name = "fashion"
    category = Category.TREND

    def __init__(self, trends=None):
        self.trends = trends or SEASONAL_TRENDS

    async def fetch(self, ctx: GenerationContext) -> List[FeedEntry]:
        season = season_for_month(to_date(ctx.group_key).month)
        for title, description in self.trends.get(season, []):
            if ctx.index.has_title(title):
                continue
            return [
                FeedEntry(
                    group_key=ctx.group_key,
                    category=self.category,
                    title=title,
                    description=description,
                    summary=f"{season.capitalize()} fashion trend",
                    links=[
                        Link(
                            label="Explore on Pinterest",
                            url=f"https://www.pinterest.com/search/pins/?q={quote_plus(title)}",
                        )
                    ],
                    metadata={"source": "Seasonal curation", "season": season},
                )
            ]
        return []
