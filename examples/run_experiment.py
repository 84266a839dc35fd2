"""
Running abstraction and look-ahead sweeps with presets:
- quick: Fast testing (3-sided die, Kuhn look-ahead depths 1-2)
- abstraction: Abstraction value of 3- and 4-sided die-roll poker for every bucket count
- lookahead: Limited look-ahead opponent on die-roll poker
Run: uv run examples/run_experiment.py <flag>
"""

import os
import sys

from src.engine import SweepConfig, AbstractionSweep, LookAheadSweep

PRESETS = {
    'quick': {
        'description': 'Fast integration test (~30 seconds)',
        'sweeps': [
            ('abstraction', SweepConfig(name='DRP3 Abstraction', game='drp', num_sides=3, bucket_counts=[3, 4, 5])),
            ('lookahead', SweepConfig(name='Kuhn Look-Ahead', game='kuhn', look_ahead_depths=[1, 2])),
        ],
    },
    'abstraction': {
        'description': 'Abstraction value for every bucket count up to the lossless size',
        'sweeps': [
            ('abstraction', SweepConfig(name='DRP3 Abstraction', game='drp', num_sides=3,
                                        bucket_counts=list(range(1, 6)))),
            ('abstraction', SweepConfig(name='DRP4 Abstraction', game='drp', num_sides=4,
                                        bucket_counts=list(range(1, 8)),
                                        solver_kwargs={'time_limit': 600})),
        ],
    },
    'lookahead': {
        'description': 'Limited look-ahead opponent on 2-sided die-roll poker (several minutes)',
        'sweeps': [
            ('lookahead', SweepConfig(name='DRP2 Look-Ahead', game='drp', num_sides=2,
                                      look_ahead_depths=[1, 2, 3, 4],
                                      solver_kwargs={'time_limit': 300})),
        ],
    },
}

SWEEPS = {
    'abstraction': (AbstractionSweep, 'num_buckets'),
    'lookahead': (LookAheadSweep, 'look_ahead'),
}


def _run_and_save(kind: str, config: SweepConfig, output_prefix: str):
    sweep_cls, x_column = SWEEPS[kind]
    sweep = sweep_cls(config)

    print("\n" + "=" * 70)
    print(f"Running {config.name}...")
    print("=" * 70)

    results_df = sweep.run(verbose=True)

    os.makedirs('results', exist_ok=True)
    print(f"\nSaving results to {output_prefix}_*.csv/html...")
    sweep.save_results(f'{output_prefix}_results.csv')
    sweep.plot_results(metric='value', filepath=f'{output_prefix}_value.html')

    print("\nSummary:")
    print(results_df.to_string(index=False))
    return results_df


def main():
    if len(sys.argv) < 2 or sys.argv[1] not in PRESETS:
        print(f"Usage: uv run examples/run_experiment.py <{'|'.join(PRESETS)}>")
        sys.exit(1)

    preset_name = sys.argv[1]
    preset = PRESETS[preset_name]
    print(f"Preset: {preset_name}")
    print(f"  Description: {preset['description']}")

    for kind, config in preset['sweeps']:
        slug = config.name.lower().replace(' ', '_').replace('-', '_')
        _run_and_save(kind, config, f'results/{preset_name}_{slug}')


if __name__ == "__main__":
    main()
