from sudoku import DIFFICULTIES

BENCHMARKS = {
    'easy': {'fast': 60, 'good': 120, 'fair': 180},
    'medium': {'fast': 180, 'good': 300, 'fair': 420},
    'hard': {'fast': 360, 'good': 600, 'fair': 900},
}
FEW_GAMES = 3
MIN_GAMES_FOR_TIPS = 5


def format_elapsed(total_seconds):
    """Format seconds as MM:SS, or N/A when there is nothing sensible to show."""
    if isinstance(total_seconds, bool) or not isinstance(total_seconds, (int, float)):
        return "N/A"
    if total_seconds != total_seconds or total_seconds < 0:
        return "N/A"
    total_seconds = int(total_seconds)
    minutes, seconds = divmod(total_seconds, 60)
    return f"{minutes:02d}:{seconds:02d}"


def sharpness(difficulty, avg_time, games_count):
    if not games_count or avg_time is None:
        return "N/A"
    marks = BENCHMARKS[difficulty]
    if avg_time <= marks['fast']:
        text = "Excellent! Very fast times."
    elif avg_time <= marks['good']:
        text = "Great! Solid and speedy."
    elif avg_time <= marks['fair']:
        text = "Good! Consistent effort."
    else:
        text = "Keep practicing to improve speed!"
    if games_count < FEW_GAMES:
        text += " (Play more for fuller assessment)"
    return text


def difficulty_stats(history):
    stats = {}
    for diff in DIFFICULTIES:
        times = [game['time_taken'] for game in history if game['difficulty'] == diff]
        # halves round up
        average = int(sum(times) / len(times) + 0.5) if times else None
        stats[diff] = {
            'games': len(times),
            'average': average,
            'fastest': min(times) if times else None,
            'sharpness': sharpness(diff, average, len(times)),
        }
    return stats


def improvement_tips(history, stats):
    tips = []
    if len(history) < MIN_GAMES_FOR_TIPS:
        tips.append("Play a few more games across different difficulties to get personalized improvement tips!")

    easy, medium, hard = stats['easy'], stats['medium'], stats['hard']
    if easy['games'] and easy['average'] is not None and easy['average'] < 120 and not medium['games']:
        tips.append("You're doing great on 'Easy'! Try stepping up to 'Medium' puzzles.")
    if medium['games'] and medium['average'] is not None and medium['average'] < 300 and not hard['games']:
        tips.append("Excellent performance on 'Medium'! Ready for the 'Hard' challenge?")

    if hard['average'] is not None and hard['average'] > 900 and hard['games'] > 2:
        tips.append("Practice on 'Hard' puzzles can help improve your completion times.")
    elif hard['games'] and hard['average'] is not None and hard['average'] <= 600:
        tips.append("You're mastering 'Hard' puzzles! Keep pushing your limits!")

    if not tips:
        return "Keep enjoying the game and challenging yourself!"
    return " ".join(tips)


def build_report(name, history):
    stats = difficulty_stats(history)
    return {
        'name': name,
        'total_games': len(history),
        'difficulties': [
            dict(stats[diff], name=diff, label=diff.capitalize(),
                 average_text=format_elapsed(stats[diff]['average']),
                 fastest_text=format_elapsed(stats[diff]['fastest']))
            for diff in DIFFICULTIES
        ],
        'improvement': improvement_tips(history, stats),
    }
